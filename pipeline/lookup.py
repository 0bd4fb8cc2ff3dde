"""
Lookup module: resolves a parent's email to the children registered with it.
"""

from typing import List, Optional

from pipeline.ledger import load_all
from pipeline.schema import (
    ChildSummary,
    LookupOutcome,
    LookupResult,
    RegistrationRecord,
    normalize_key,
)


def records_for_email(email: str, records: List[RegistrationRecord]) -> List[RegistrationRecord]:
    """All records registered under ``email``, in ledger order."""
    return [r for r in records if r.matches_email(email)]


def find_by_email(email: Optional[str], ledger_path: Optional[str] = None) -> LookupResult:
    """
    Looks up every child registered with ``email``.

    The whole family gates the result: if every matched child is already Done
    the email is blocked, otherwise all matched children are returned (Done ones
    included, each carrying its status) so the caller can skip them.

    Raises:
        LedgerUnreadable: if the ledger cannot be loaded
    """
    if not normalize_key(email):
        return LookupResult(outcome=LookupOutcome.NOT_FOUND)

    matched = records_for_email(email, load_all(ledger_path))
    if not matched:
        return LookupResult(outcome=LookupOutcome.NOT_FOUND)

    children = [
        ChildSummary(child_name=r.child_name, age=r.age, status=r.status)
        for r in matched
    ]
    if all(r.is_done for r in matched):
        return LookupResult(outcome=LookupOutcome.ALREADY_COMPLETE, children=children)

    return LookupResult(outcome=LookupOutcome.ELIGIBLE, children=children)
