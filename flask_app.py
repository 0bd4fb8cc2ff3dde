"""
Flask application for the image reference submission form.
Parents look up their registration by email and upload one image per child;
admins browse the gallery and the registration table.
"""

from flask import Flask, render_template, request, jsonify, send_file, send_from_directory, abort
from werkzeug.exceptions import RequestEntityTooLarge
from pathlib import Path
import os
import logging

from dotenv import load_dotenv

# Load environment variables from .env file (for local development)
load_dotenv()

from pipeline import ledger as ledger_store
from pipeline.categories import bucket_for, category_names
from pipeline.errors import (
    InvalidAge,
    LedgerUnreadable,
    LedgerWriteFailed,
    RegistrationNotFound,
    StorageMoveFailed,
    SubmissionAlreadyComplete,
)
from pipeline.ingest import (
    ALLOWED_EXTENSIONS,
    STAGING_DIR,
    STORAGE_ROOT,
    allowed_file,
    discard_staged,
    list_stored_files,
    stage_upload,
)
from pipeline.lookup import find_by_email
from pipeline.schema import LookupOutcome
from pipeline.submission import submit
from jobs.queue import enqueue_mirror

app = Flask(__name__)
app.logger.setLevel(logging.INFO)

# Configuration
app.config["LEDGER_PATH"] = ledger_store.LEDGER_PATH
app.config["STORAGE_ROOT"] = STORAGE_ROOT
app.config["STAGING_DIR"] = STAGING_DIR
app.config["MAX_CONTENT_LENGTH"] = int(os.environ.get("MAX_UPLOAD_MB", 4)) * 1024 * 1024  # 4MB max file size

NOT_REGISTERED_MESSAGE = "Email not used to register, please try again."
ALREADY_COMPLETE_MESSAGE = "Images have already been submitted for every child registered with this email."
NO_FILE_MESSAGE = "No file uploaded or file is too large."
UNAVAILABLE_MESSAGE = "Registrations are unavailable right now. Please try again later."


def _error(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _lookup_message(result) -> str:
    if result.outcome == LookupOutcome.NOT_FOUND:
        return NOT_REGISTERED_MESSAGE
    if result.outcome == LookupOutcome.ALREADY_COMPLETE:
        return ALREADY_COMPLETE_MESSAGE
    return ""


@app.errorhandler(RequestEntityTooLarge)
def file_too_large(e):
    return _error(NO_FILE_MESSAGE, 413)


@app.route("/")
def index():
    """
    Parent-facing submission form.
    With ``?email=`` the page shows that email's children and preselects them for upload.
    """
    email = request.args.get("email", "").strip()
    lookup, message = None, ""
    if email:
        try:
            lookup = find_by_email(email, ledger_path=app.config["LEDGER_PATH"])
            message = _lookup_message(lookup)
        except LedgerUnreadable as e:
            app.logger.error(f"❌ Ledger unreadable during lookup: {e}")
            message = UNAVAILABLE_MESSAGE
    return render_template(
        "index.html",
        email=email,
        lookup=lookup,
        message=message,
        max_upload_mb=app.config["MAX_CONTENT_LENGTH"] // (1024 * 1024),
    )


@app.route("/check-email")
def check_email():
    """Look up the children registered under an email."""
    email = request.args.get("email", "").strip()
    if not email:
        return jsonify({"success": False, "message": "Please enter a valid email address."})

    try:
        result = find_by_email(email, ledger_path=app.config["LEDGER_PATH"])
    except LedgerUnreadable as e:
        app.logger.error(f"❌ Ledger unreadable during lookup: {e}")
        return jsonify({"success": False, "message": UNAVAILABLE_MESSAGE}), 500

    if not result.eligible:
        return jsonify({"success": False, "message": _lookup_message(result)})

    return jsonify({
        "success": True,
        "children": [child.to_json() for child in result.children],
    })


@app.route("/upload-image", methods=["POST"])
def upload_image():
    """Store one child's image under its age category and mark the registration Done."""
    upload = request.files.get("file")
    if upload is None or upload.filename == "":
        return _error(NO_FILE_MESSAGE, 400)

    child_name = request.form.get("childName", "").strip()
    email = request.form.get("email", "").strip()
    age = request.form.get("age", "")

    if not child_name or not email:
        return _error("Child name and email are required.", 400)

    if not allowed_file(upload.filename):
        allowed = ", ".join(sorted(ALLOWED_EXTENSIONS))
        return _error(f"Only image files ({allowed}) are accepted.", 400)

    # Reject a bad age before anything touches the disk
    try:
        bucket_for(age)
    except InvalidAge as e:
        return _error(str(e), 400)

    try:
        staged_path = stage_upload(upload, staging_dir=app.config["STAGING_DIR"])
    except OSError as e:
        app.logger.error(f"❌ Could not stage upload {upload.filename}: {e}")
        return _error("Could not save the uploaded file.", 500)

    try:
        result = submit(
            child_name=child_name,
            email=email,
            age=age,
            staged_path=staged_path,
            original_filename=upload.filename,
            ledger_path=app.config["LEDGER_PATH"],
            storage_root=app.config["STORAGE_ROOT"],
            mirror=enqueue_mirror,
        )
    except InvalidAge as e:
        return _error(str(e), 400)
    except RegistrationNotFound:
        return _error(NOT_REGISTERED_MESSAGE, 404)
    except SubmissionAlreadyComplete:
        return _error(f"An image has already been submitted for {child_name}.", 409)
    except StorageMoveFailed as e:
        app.logger.error(f"❌ {e}")
        return _error("Could not store the uploaded file.", 500)
    except LedgerUnreadable as e:
        app.logger.error(f"❌ Ledger unreadable during submission: {e}")
        return _error(UNAVAILABLE_MESSAGE, 500)
    except LedgerWriteFailed as e:
        app.logger.error(f"❌ Ledger write failed, image kept at {e.stored_path}: {e}")
        return jsonify({
            "success": False,
            "error": "Your image was saved but the registration could not be updated. Please contact the organisers.",
            "stored": e.stored_path is not None,
        }), 500
    except Exception:
        discard_staged(staged_path)
        raise

    return jsonify({"success": True, "category": result.category, "fileName": result.file_name})


@app.route("/uploads/<category>/<path:filename>")
def stored_image(category: str, filename: str):
    """Serve a stored image for the admin gallery."""
    if category not in category_names():
        abort(404)
    directory = Path(app.config["STORAGE_ROOT"]).resolve() / category
    return send_from_directory(directory, filename)


@app.route("/admin")
def admin_gallery():
    """Gallery of stored images grouped by category."""
    stats, ledger_error = {"total_count": 0, "pending_count": 0, "done_count": 0}, None
    try:
        stats = ledger_store.ledger_stats(app.config["LEDGER_PATH"])
    except LedgerUnreadable as e:
        app.logger.error(f"❌ Ledger unreadable for admin gallery: {e}")
        ledger_error = str(e)
    return render_template(
        "gallery.html",
        gallery=list_stored_files(app.config["STORAGE_ROOT"]),
        stats=stats,
        ledger_error=ledger_error,
    )


@app.route("/admin/table")
def admin_table():
    """Registration table, sortable by any ledger column."""
    sort = request.args.get("sort")
    order = request.args.get("order", "asc")
    records, ledger_error = [], None
    try:
        records = ledger_store.load_all(app.config["LEDGER_PATH"])
    except LedgerUnreadable as e:
        app.logger.error(f"❌ Ledger unreadable for admin table: {e}")
        ledger_error = str(e)
    rows = ledger_store.sort_records(records, column=sort, descending=(order == "desc"))
    return render_template(
        "table.html",
        columns=ledger_store.CSV_HEADERS,
        rows=[r.model_dump(by_alias=True, mode="json") for r in rows],
        sort=sort,
        order=order,
        ledger_error=ledger_error,
    )


@app.route("/admin/export")
def admin_export():
    """Download the ledger CSV."""
    path = Path(app.config["LEDGER_PATH"]).resolve()
    if not path.exists():
        abort(404)
    return send_file(
        path,
        mimetype="text/csv",
        as_attachment=True,
        download_name=path.name,
    )


if __name__ == "__main__":
    port = int(os.environ.get("PORT", os.environ.get("FLASK_PORT", 3000)))
    app.run(host="0.0.0.0", port=port, debug=False)
