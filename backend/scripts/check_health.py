"""Run a quick smoke check against the app.

Calls `/health` through FastAPI's TestClient and prints the response.
"""

import sys
import os

# Ensure backend folder is on sys.path so `quizcraft` package can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient
from quizcraft.main import app


def run_testclient():
    client = TestClient(app)
    resp = client.get('/health')
    print('STATUS:', resp.status_code)
    print('JSON:', resp.json())
    return resp.status_code


if __name__ == '__main__':
    sys.exit(0 if run_testclient() == 200 else 1)
