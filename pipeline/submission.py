"""
Submission workflow: files a child's uploaded image and marks the registration Done.
"""

import logging
from typing import Callable, List, Optional, Union

from pipeline.categories import bucket_for
from pipeline.errors import (
    InvalidAge,
    LedgerUnreadable,
    LedgerWriteFailed,
    RegistrationNotFound,
    StorageMoveFailed,
    SubmissionAlreadyComplete,
)
from pipeline.ingest import discard_staged, relocate_upload, stored_filename
from pipeline.ledger import update_records
from pipeline.schema import RegistrationRecord, SubmissionResult

logger = logging.getLogger(__name__)

MirrorFn = Callable[[str, str], None]


def _default_mirror(file_path: str, file_name: str) -> None:
    from jobs.queue import enqueue_mirror
    enqueue_mirror(file_path, file_name)


def submit(
    child_name: str,
    email: str,
    age: Union[int, str],
    staged_path: str,
    original_filename: Optional[str] = None,
    ledger_path: Optional[str] = None,
    storage_root: Optional[str] = None,
    mirror: Optional[MirrorFn] = None,
) -> SubmissionResult:
    """
    Stores a staged upload under the child's age category and marks the child's
    registration Done.

    The registration check, the file move and the ledger rewrite run inside one
    ledger critical section, so a child can only be submitted once and
    concurrent submissions never drop each other's status updates.

    Args:
        child_name: Child the image belongs to
        email: Parent email the child is registered under
        age: Child's age (int or digit string)
        staged_path: Path of the already-staged upload
        original_filename: Name the client sent, used for the extension
        mirror: Called with (stored_path, file_name) after success; defaults
            to the detached Supabase mirror

    Returns:
        SubmissionResult

    Raises:
        InvalidAge: before any I/O
        RegistrationNotFound / SubmissionAlreadyComplete: staged file discarded
        StorageMoveFailed: staged file discarded, ledger untouched
        LedgerWriteFailed: image already stored at ``stored_path``
        LedgerUnreadable: ledger could not be loaded
    """
    try:
        category = bucket_for(age)
    except InvalidAge:
        discard_staged(staged_path)
        raise

    stored = {}

    def _file_and_mark(records: List[RegistrationRecord]) -> int:
        matched = [r for r in records if r.matches_child(email, child_name)]
        if not matched:
            raise RegistrationNotFound(f"No registration for {child_name!r} under {email!r}")
        pending = [r for r in matched if not r.is_done]
        if not pending:
            raise SubmissionAlreadyComplete(f"An image was already submitted for {child_name!r}")

        # Name the file after the ledger's spelling, not the request's
        record = matched[0]
        stored["name"] = stored_filename(record.child_name, record.email, original_filename)
        stored["path"] = relocate_upload(staged_path, category, stored["name"], storage_root=storage_root)
        for r in pending:
            r.mark_done()
        return len(pending)

    try:
        updated = update_records(_file_and_mark, ledger_path=ledger_path)
    except (RegistrationNotFound, SubmissionAlreadyComplete, StorageMoveFailed, LedgerUnreadable):
        discard_staged(staged_path)
        raise
    except LedgerWriteFailed as e:
        if "path" not in stored:
            raise
        logger.error(f"❌ Image stored at {stored['path']} but ledger update failed: {e}")
        raise LedgerWriteFailed(str(e), stored_path=stored["path"]) from e

    file_name = stored["name"]
    logger.info(f"✅ Submission recorded: file={file_name} category={category} records={updated}")

    try:
        (mirror or _default_mirror)(stored["path"], file_name)
    except Exception as e:
        logger.warning(f"⚠️ Mirror dispatch failed for {file_name}: {e}")

    return SubmissionResult(
        category=category,
        file_name=file_name,
        stored_path=stored["path"],
        records_updated=updated,
    )
