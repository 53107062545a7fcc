"""Run a quick smoke check against the app in-process.

Hits the health check and confirms that protected endpoints reject an
anonymous client. Exits non-zero if anything looks wrong.
"""

import sys
import os

# Ensure backend folder is on sys.path so `peerfetch` package can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient
from peerfetch.main import app

CHECKS = [
    ('GET', '/health', 200),
    ('GET', '/api/auth/me', 401),
    ('GET', '/api/students', 401),
    ('GET', '/api/admin/pending', 401),
]


def run() -> int:
    client = TestClient(app)
    failures = 0
    for method, path, expected in CHECKS:
        resp = client.request(method, path)
        ok = resp.status_code == expected
        failures += 0 if ok else 1
        print(f"{'OK  ' if ok else 'FAIL'} {method} {path} -> {resp.status_code} (expected {expected})")
    return failures


if __name__ == '__main__':
    sys.exit(1 if run() else 0)
