"""
Ledger store: reads and rewrites the registrations CSV with a fixed column set.

The ledger is always read in full and rewritten in full. Rewrites go through a
temporary sibling file and an atomic replace so a failed write never truncates
the existing ledger.
"""

import csv
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, TypeVar

from pydantic import ValidationError

from pipeline.errors import LedgerUnreadable, LedgerWriteFailed
from pipeline.schema import RegistrationRecord, SubmissionStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")

LEDGER_PATH = os.environ.get("LEDGER_PATH", os.path.join("data", "image-ref-registrations.csv"))

# Frozen ledger columns
CSV_HEADERS = [
    "Child Name",
    "Parent Name",
    "Date of Birth",
    "Age",
    "Gender",
    "Education Board",
    "Grade",
    "Section",
    "Country Code",
    "Phone Number",
    "Email",
    "Registration ID",
    "Submission-Status",
]

REQUIRED_HEADERS = ("Child Name", "Email")

_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _resolve(ledger_path: Optional[str]) -> Path:
    return Path(ledger_path or LEDGER_PATH)


@contextmanager
def ledger_lock(ledger_path: Optional[str] = None) -> Iterator[None]:
    """Serialize read-modify-write cycles on one ledger file within this process."""
    key = str(_resolve(ledger_path).resolve())
    with _locks_guard:
        lock = _locks.setdefault(key, threading.Lock())
    with lock:
        yield


def _read_header(path: Path) -> List[str]:
    with open(path, "r", newline="", encoding="utf-8-sig") as f:
        reader = csv.reader(f)
        return next(reader, [])


def _record_from_row(row: dict, line_no: int) -> RegistrationRecord:
    if None in row:
        raise LedgerUnreadable(f"Ledger row {line_no} has more cells than the header")
    known = {}
    extra = {}
    for column, value in row.items():
        value = value if value is not None else ""
        if column in CSV_HEADERS:
            known[column] = value
        else:
            extra[column] = value
    try:
        return RegistrationRecord.model_validate({**known, "extra_columns": extra})
    except ValidationError as e:
        raise LedgerUnreadable(f"Ledger row {line_no} is malformed: {e}") from e


def _record_to_row(record: RegistrationRecord) -> dict:
    row = {
        "Child Name": record.child_name,
        "Parent Name": record.parent_name,
        "Date of Birth": record.date_of_birth,
        "Age": record.age_text,
        "Gender": record.gender,
        "Education Board": record.education_board,
        "Grade": record.grade,
        "Section": record.section,
        "Country Code": record.country_code,
        "Phone Number": record.phone_number,
        "Email": record.email,
        "Registration ID": record.registration_id,
        "Submission-Status": record.status_text,
    }
    row.update(record.extra_columns)
    return row


def load_all(ledger_path: Optional[str] = None) -> List[RegistrationRecord]:
    """
    Loads every registration record from the ledger, in file order.

    Raises:
        LedgerUnreadable: if the file is missing, lacks required columns,
            or any row has more cells than the header
    """
    path = _resolve(ledger_path)
    if not path.exists():
        raise LedgerUnreadable(f"Ledger not found: {path}")

    try:
        with open(path, "r", newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            header = reader.fieldnames or []
            missing = [column for column in REQUIRED_HEADERS if column not in header]
            if missing:
                raise LedgerUnreadable(f"Ledger {path} is missing columns: {', '.join(missing)}")
            # line 1 is the header
            return [_record_from_row(row, line_no) for line_no, row in enumerate(reader, start=2)]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise LedgerUnreadable(f"Could not read ledger {path}: {e}") from e


def _fieldnames_for(records: List[RegistrationRecord], path: Path) -> List[str]:
    """Existing header order first, then any missing fixed columns, then extra columns."""
    fieldnames: List[str] = []
    if path.exists():
        try:
            fieldnames = [name for name in _read_header(path) if name]
        except (OSError, UnicodeDecodeError, csv.Error):
            fieldnames = []
    for column in CSV_HEADERS:
        if column not in fieldnames:
            fieldnames.append(column)
    for record in records:
        for column in record.extra_columns:
            if column not in fieldnames:
                fieldnames.append(column)
    return fieldnames


def save_all(records: List[RegistrationRecord], ledger_path: Optional[str] = None) -> str:
    """
    Rewrites the whole ledger with ``records``.

    Returns:
        Path to the ledger file written

    Raises:
        LedgerWriteFailed: on any I/O error; the previous ledger is left intact
    """
    path = _resolve(ledger_path)
    fieldnames = _fieldnames_for(records, path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", newline="", encoding="utf-8", dir=path.parent,
            prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as f:
            tmp_name = f.name
            writer = csv.DictWriter(f, fieldnames=fieldnames)
            writer.writeheader()
            for record in records:
                writer.writerow(_record_to_row(record))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise LedgerWriteFailed(f"Could not write ledger {path}: {e}") from e

    return str(path)


def update_records(
    mutator: Callable[[List[RegistrationRecord]], T],
    ledger_path: Optional[str] = None,
) -> T:
    """
    Runs load -> mutate -> save as one critical section.

    ``mutator`` edits the loaded records in place and returns a value that is
    passed back to the caller. A falsy return skips the rewrite; an exception
    raised by the mutator aborts without writing.
    """
    with ledger_lock(ledger_path):
        records = load_all(ledger_path)
        result = mutator(records)
        if result:
            save_all(records, ledger_path)
            logger.info(f"💾 Ledger rewritten ({len(records)} records)")
        return result


def ledger_stats(ledger_path: Optional[str] = None) -> dict:
    """
    Returns statistics about the ledger.

    Returns:
        dict with total, pending and done counts
    """
    records = load_all(ledger_path)
    done = sum(1 for r in records if r.status == SubmissionStatus.DONE)
    return {
        "total_count": len(records),
        "pending_count": len(records) - done,
        "done_count": done,
        "ledger_file": str(_resolve(ledger_path)),
    }


def sort_records(
    records: List[RegistrationRecord],
    column: Optional[str] = None,
    descending: bool = False,
) -> List[RegistrationRecord]:
    """
    Returns records ordered by a ledger column for the admin table.
    Unknown columns keep ledger order. Age sorts numerically with blank or
    non-numeric cells last.
    """
    if column not in CSV_HEADERS:
        return list(records)

    if column == "Age":
        with_age = [r for r in records if r.age is not None]
        blank = [r for r in records if r.age is None]
        return sorted(with_age, key=lambda r: r.age, reverse=descending) + blank

    return sorted(
        records,
        key=lambda r: str(_record_to_row(r)[column]).lower(),
        reverse=descending,
    )
