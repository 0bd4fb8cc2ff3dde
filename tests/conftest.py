"""Shared fixtures: a small registrations ledger on disk."""

import pytest

from ledger_helpers import make_row, write_ledger


@pytest.fixture
def ledger_rows():
    return [
        make_row("Asha", "a@x.com", 7),
        make_row("Ravi", "a@x.com", 10, Gender="M"),
        make_row("Meera", "meera.parent@example.org", 14),
        make_row("Kabir", "done@example.org", 9, status="Done"),
        make_row("Zoya", "done@example.org", 12, status="Done"),
    ]


@pytest.fixture
def ledger_path(tmp_path, ledger_rows):
    return write_ledger(tmp_path / "registrations.csv", ledger_rows)


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    return str(root)


@pytest.fixture
def staged_file(tmp_path):
    """Factory for staged uploads."""
    staging = tmp_path / "staging"
    staging.mkdir()
    counter = {"n": 0}

    def _make(content=b"\x89PNG\r\n\x1a\nfake", suffix=".png"):
        counter["n"] += 1
        path = staging / f"staged-{counter['n']}{suffix}"
        path.write_bytes(content)
        return str(path)

    return _make
