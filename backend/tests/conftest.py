"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

# Make `backend` importable without installing the project.
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.mcps.codescan.errors import FileFetchFailed  # noqa: E402
from backend.mcps.codescan.models import FileRecord  # noqa: E402


class FakeRepository:
    """In-memory repository snapshot: tree listing plus a content fetcher."""

    def __init__(
        self,
        files: Optional[Dict[str, Union[str, bytes, Exception]]] = None,
        directories: Optional[List[str]] = None,
    ):
        self.files = dict(files or {})
        self.directories = list(directories or [])
        self.fetched: List[str] = []

    def records(self) -> List[FileRecord]:
        records = [FileRecord(path=path, is_blob=False) for path in self.directories]
        records.extend(FileRecord(path=path) for path in self.files)
        return records

    def fetch(self, path: str) -> Union[str, bytes]:
        self.fetched.append(path)
        if path not in self.files:
            raise FileFetchFailed(path, "HTTP 404")
        content = self.files[path]
        if isinstance(content, Exception):
            raise content
        return content


@pytest.fixture
def make_repo():
    """Factory for FakeRepository snapshots."""
    return FakeRepository


@pytest.fixture
def vulnerable_python_code():
    """Sample Python module with one secret, one SQL query and nothing else."""
    return '''import os

API_KEY = "sk_live_51234567890abcdef"

def find_user(db, name):
    query = "SELECT * FROM users WHERE name = 'admin'"
    return db.execute(query)
'''


@pytest.fixture
def vulnerable_html_code():
    """Sample page with inline script and an event handler attribute."""
    return '''<html>
<body>
  <h1>Welcome</h1>
  <script>document.write(location.hash)</script>
  <img src="x.png" onerror="alert(1)">
</body>
</html>
'''


@pytest.fixture
def clean_code():
    """Sample code with no rule matches."""
    return '''import os

API_KEY = os.environ.get("API_KEY")


def add(a, b):
    return a + b
'''
