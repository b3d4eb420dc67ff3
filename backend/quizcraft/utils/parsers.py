"""File parsing utilities that convert uploaded question files into a
normalized question list for quiz authoring.

Supported input types: JSON, CSV, TXT, PDF and DOCX. Parsers return a
list of dictionaries with keys: `question_text`, `options` (each
`{'text', 'is_correct'}`), `points` and `explanation`. Parsers do not
enforce the four-option / one-correct rule; `QuizService` validates every
item and reports per-item errors.
"""

import io
import json
import csv
from typing import List, Dict, Optional
import pdfplumber
import docx
from typing import Tuple

_CORRECT_MARKERS = ('(correct)', '[correct]', '{correct}')
_LETTERS = 'ABCD'


def parse_file_to_questions(file_bytes: bytes, filename: str) -> List[Dict]:
    """Dispatch to the appropriate parser based on file extension."""
    name = filename.lower()
    if name.endswith('.json'):
        return parse_json(file_bytes)
    if name.endswith('.csv'):
        return parse_csv(file_bytes)
    if name.endswith('.txt'):
        return parse_txt(file_bytes)
    if name.endswith('.pdf'):
        return parse_pdf(file_bytes)
    if name.endswith('.docx'):
        return parse_docx(file_bytes)
    raise ValueError('Unsupported file type')


def parse_json(b: bytes):
    """Parse a JSON array (or `{"questions": [...]}`) and normalize items."""
    try:
        data = json.loads(b.decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f'invalid JSON: {e}')
    if isinstance(data, dict):
        data = data.get('questions', [])
    if not isinstance(data, list):
        raise ValueError('JSON must contain a list of questions')
    return [normalize_question(item) if isinstance(item, dict) else item for item in data]


def parse_csv(b: bytes):
    """Parse a CSV where a single column contains pipe-separated options.

    Expected columns: `question` or `question_text`, `options` (pipe
    separated) and `correct`, which may be the option text, a letter A-D
    or a 1-based number. Optional columns: `points`, `explanation`.
    Options may instead carry inline markers (see `_parse_option_line`).
    """
    out = []
    sio = io.StringIO(b.decode('utf-8'))
    try:
        rows = list(csv.DictReader(sio))
    except csv.Error as e:
        raise ValueError(f'invalid CSV: {e}')
    for row in rows:
        raw = row.get('options') or row.get('answers') or ''
        options = [_option(*_parse_option_line(p)) for p in raw.split('|') if p.strip()]
        correct = (row.get('correct') or '').strip()
        if correct:
            idx = _correct_index(correct, options)
            for i, o in enumerate(options):
                o['is_correct'] = i == idx
        out.append({
            'question_text': str(row.get('question') or row.get('question_text') or '').strip(),
            'options': options,
            'points': _coerce_int(row.get('points')) or 1,
            'explanation': (row.get('explanation') or '').strip(),
        })
    return out


def parse_txt(b: bytes):
    """Parse plaintext where questions are separated by blank lines.

    The first line of a block is the question, following lines are the
    options. Without a correctness marker the first option is correct.
    """
    return _blocks_to_questions(_split_blocks(b.decode('utf-8')))


def parse_pdf(b: bytes):
    """Extract text from PDF pages and parse it like a plaintext file."""
    text_parts = []
    try:
        with pdfplumber.open(io.BytesIO(b)) as pdf:
            for page in pdf.pages:
                extracted = page.extract_text() or ''
                text_parts.append(extracted)
    except Exception as e:
        # pdfminer raises its own syntax errors for damaged files
        raise ValueError('could not read PDF file') from e
    return _blocks_to_questions(_split_blocks('\n'.join(text_parts)))


def parse_docx(b: bytes):
    """Parse a DOCX document into question blocks.

    Paragraph groups separated by empty paragraphs are treated as a
    question block. If a block contains `|` it is parsed as
    `question|option1|option2...` otherwise the first line is the
    question and subsequent lines are options.
    """
    try:
        doc = docx.Document(io.BytesIO(b))
    except Exception as e:
        # not a zip archive, or a zip without a Word document part
        raise ValueError('could not read DOCX file') from e
    blocks = []
    current = []
    for p in doc.paragraphs:
        text = (p.text or '').strip()
        if not text:
            if current:
                blocks.append('\n'.join(current))
                current = []
            continue
        current.append(text)
    if current:
        blocks.append('\n'.join(current))
    return _blocks_to_questions(blocks)


def normalize_question(item: dict) -> dict:
    """Map alternative keys of a JSON question onto the canonical shape.

    Options may be strings or objects with `text`/`answer_text` and
    `is_correct`/`isCorrect`; `correct_index` may select the correct one.
    """
    raw_options = item.get('options') or item.get('possible_answers') or item.get('answers') or []
    if not isinstance(raw_options, list):
        raw_options = []
    options = []
    for o in raw_options:
        if isinstance(o, dict):
            options.append(_option(
                str(o.get('text') or o.get('answer_text') or '').strip(),
                bool(o.get('is_correct') or o.get('isCorrect')),
            ))
        else:
            options.append(_option(*_parse_option_line(str(o))))
    correct_index = _coerce_int(item.get('correct_index'))
    if correct_index is not None:
        for i, o in enumerate(options):
            o['is_correct'] = i == correct_index
    return {
        'question_text': str(item.get('question_text') or item.get('questionText') or item.get('question') or '').strip(),
        'options': options,
        'points': _coerce_int(item.get('points')) or 1,
        'explanation': str(item.get('explanation') or '').strip(),
    }


def _split_blocks(text: str) -> List[str]:
    return [blk.strip() for blk in text.replace('\r\n', '\n').split('\n\n') if blk.strip()]


def _blocks_to_questions(blocks: List[str]) -> List[Dict]:
    out = []
    for blk in blocks:
        if '|' in blk:
            parts = [x.strip() for x in blk.split('|') if x.strip()]
        else:
            parts = [l.strip() for l in blk.splitlines() if l.strip()]
        if not parts:
            continue
        options = [_option(*_parse_option_line(x)) for x in parts[1:]]
        # Unmarked blocks: the first option is the correct one.
        if options and not any(o['is_correct'] for o in options):
            options[0]['is_correct'] = True
        out.append({'question_text': parts[0], 'options': options, 'points': 1, 'explanation': ''})
    return out


def _option(text: str, is_correct: bool) -> dict:
    return {'text': text, 'is_correct': is_correct}


def _correct_index(correct: str, options: List[dict]) -> Optional[int]:
    """Resolve a CSV `correct` cell to an option index."""
    for i, o in enumerate(options):
        if o['text'] == correct:
            return i
    upper = correct.upper()
    if len(upper) == 1 and upper in _LETTERS:
        return _LETTERS.index(upper)
    number = _coerce_int(correct)
    if number is not None:
        return number - 1
    return None


def _parse_option_line(text: str) -> Tuple[str, bool]:
    """Detect simple correctness markers in an option line.

    Supports a leading '*' or trailing markers like '(correct)'; falls back to False.
    """
    is_correct = False
    cleaned = text.strip()
    lower = cleaned.lower()
    for marker in _CORRECT_MARKERS:
        if lower.endswith(marker):
            is_correct = True
            cleaned = cleaned[: -len(marker)].strip()
            break
    if cleaned.startswith('*'):
        is_correct = True
        cleaned = cleaned.lstrip('*').strip()
    return cleaned, is_correct


def _coerce_int(val):
    try:
        return int(val) if val is not None and str(val).strip() != '' else None
    except (TypeError, ValueError):
        return None
