"""
Ingestion module: stages uploads and relocates them into category directories.
"""

import hashlib
import logging
import os
import shutil
import time
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from werkzeug.utils import secure_filename

from pipeline.categories import category_names
from pipeline.errors import StorageMoveFailed
from pipeline.schema import normalize_key

logger = logging.getLogger(__name__)

STORAGE_ROOT = os.environ.get("STORAGE_ROOT", os.path.join("public", "uploads"))
STAGING_DIR = os.environ.get("STAGING_DIR", os.path.join(STORAGE_ROOT, ".staging"))

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


def allowed_file(filename: Optional[str]) -> bool:
    return bool(filename) and "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _extension(original_filename: Optional[str]) -> str:
    file_ext = Path(original_filename or "").suffix.lower()
    if not file_ext:
        file_ext = ".bin"
    return file_ext


def stage_upload(upload, staging_dir: Optional[str] = None) -> str:
    """
    Saves an incoming upload under a unique temporary name.

    Args:
        upload: werkzeug FileStorage from the request
        staging_dir: Directory for staged files

    Returns:
        Path to the staged file
    """
    directory = Path(staging_dir or STAGING_DIR)
    directory.mkdir(parents=True, exist_ok=True)

    staged_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{_extension(upload.filename)}"
    staged_path = directory / staged_name
    upload.save(str(staged_path))
    return str(staged_path)


def _name_part(value: str) -> str:
    cleaned = secure_filename(value.strip().replace("@", "_at_"))
    if cleaned:
        return cleaned
    # Names with no ASCII-safe characters still need a stable, traceable part
    return _digest(value)


def _digest(value: str, length: int = 12) -> str:
    return hashlib.sha256(normalize_key(value).encode("utf-8")).hexdigest()[:length]


def stored_filename(child_name: str, email: str, original_filename: Optional[str]) -> str:
    """
    Deterministic stored name for a child's image: ``<child>_<email>_<digest><ext>``.

    ``secure_filename`` drops characters such as ``+``, so two different emails
    can sanitize to the same text; the digest of the normalized email keeps
    their files apart. The same child and email always produce the same name.
    """
    email_part = f"{_name_part(email.lower())}_{_digest(email, 8)}"
    return f"{_name_part(child_name)}_{email_part}{_extension(original_filename)}"


def relocate_upload(
    staged_path: str,
    category: str,
    file_name: str,
    storage_root: Optional[str] = None,
) -> str:
    """
    Moves a staged upload to ``<storage_root>/<category>/<file_name>``.
    An existing file with the same name is replaced.

    Returns:
        Final path of the stored file

    Raises:
        StorageMoveFailed: if the file cannot be moved
    """
    target_dir = Path(storage_root or STORAGE_ROOT) / category
    target_path = target_dir / file_name
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        shutil.move(staged_path, str(target_path))
    except OSError as e:
        raise StorageMoveFailed(f"Could not store {file_name} in {category}: {e}") from e

    logger.info(f"📁 Stored {file_name} in {category}")
    return str(target_path)


def discard_staged(staged_path: Optional[str]) -> None:
    """Remove a staged upload that will not be submitted."""
    if staged_path and os.path.exists(staged_path):
        try:
            os.remove(staged_path)
        except OSError as e:
            logger.warning(f"⚠️ Could not remove staged upload {staged_path}: {e}")


def list_stored_files(storage_root: Optional[str] = None) -> Dict[str, List[str]]:
    """
    Returns stored file names grouped by category, for the admin gallery.

    Returns:
        dict mapping every category name to its sorted file names
    """
    root = Path(storage_root or STORAGE_ROOT)
    gallery = {}
    for category in category_names():
        directory = root / category
        if directory.is_dir():
            gallery[category] = sorted(p.name for p in directory.iterdir() if p.is_file())
        else:
            gallery[category] = []
    return gallery
