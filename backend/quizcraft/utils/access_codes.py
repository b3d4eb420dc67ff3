"""Quiz access codes and join links."""

import secrets

# No I, O, 0 or 1: codes are read aloud and typed by students.
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
CODE_LENGTH = 6


def generate_access_code(length: int = CODE_LENGTH) -> str:
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def unique_access_code(is_taken, attempts: int = 20) -> str:
    """Generate a code for which `is_taken(code)` is False."""
    for _ in range(attempts):
        code = generate_access_code()
        if not is_taken(code):
            return code
    raise RuntimeError('could not generate a unique access code')


def join_link(base_url: str, code: str) -> str:
    return f"{base_url.rstrip('/')}/join-quiz.html?code={code}"
