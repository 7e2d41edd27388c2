import logging
import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

import db
from services import layout_settings, load_layout
from services.item_importer import ItemImporter
from services.models import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class UploadValidationError(Exception):
    def __init__(self, message, summary=None):
        super().__init__(message)
        self.summary = summary or {}


def _is_local_dev_mode():
    env_hint = (os.environ.get("APP_ENV") or os.environ.get("FLASK_ENV") or "").strip().lower()
    if env_hint in {"dev", "development", "local", "test"}:
        return True
    return os.environ.get("FLASK_DEBUG", "").strip() == "1"


def _max_upload_bytes():
    raw = os.environ.get("MAX_UPLOAD_BYTES")
    try:
        parsed = int(raw) if raw else DEFAULT_MAX_UPLOAD_BYTES
    except ValueError:
        logger.warning("Ignoring invalid MAX_UPLOAD_BYTES=%r.", raw)
        return DEFAULT_MAX_UPLOAD_BYTES
    return parsed if parsed > 0 else DEFAULT_MAX_UPLOAD_BYTES


app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = _max_upload_bytes()

db.init_db()


def _json_body():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else None


@app.errorhandler(RequestEntityTooLarge)
def _upload_too_large(_exc):
    return jsonify({"error": "Uploaded file is too large."}), 413


@app.route("/healthz")
def healthz():
    return jsonify({"status": "ok"})


@app.route("/api/layout", methods=["POST"])
def api_layout():
    payload = _json_body()
    if payload is None:
        return jsonify({"error": "Expected a JSON object with items and vehicle."}), 400

    try:
        layout = load_layout.calculate_load_layout(
            payload.get("items") or [],
            payload.get("vehicle"),
        )
    except InvalidInputError as exc:
        logger.info("Rejected layout request: %s %s", exc, exc.errors)
        return jsonify({"error": str(exc), "errors": exc.errors}), 400
    return jsonify(layout.to_dict())


def _parse_uploaded_items(upload):
    if upload is None or not upload.filename:
        raise UploadValidationError("Please choose a CSV or XLSX file to upload.")
    summary = ItemImporter().parse_file(upload.stream, filename=upload.filename)
    if not summary["items"]:
        raise UploadValidationError("No valid item rows found in the upload.", summary)
    if summary["rejected_rows"]:
        logger.info(
            "Item upload %s: %s of %s rows rejected.",
            upload.filename,
            len(summary["rejected_rows"]),
            summary["total_rows"],
        )
    return summary


@app.route("/api/items/upload", methods=["POST"])
def api_items_upload():
    try:
        summary = _parse_uploaded_items(request.files.get("file"))
    except UploadValidationError as exc:
        body = {"error": str(exc)}
        body.update(exc.summary)
        return jsonify(body), 400
    except ValueError as exc:
        logger.warning("Item upload failed: %s", exc)
        return jsonify({"error": f"Upload failed: {exc}"}), 400
    return jsonify(summary)


@app.route("/api/settings/layout", methods=["GET"])
def api_get_layout_settings():
    return jsonify({"settings": layout_settings.get_layout_assumptions()})


@app.route("/api/settings/layout", methods=["POST"])
def api_save_layout_settings():
    payload = _json_body()
    if payload is None:
        return jsonify({"error": "Expected a JSON object of settings."}), 400
    current = layout_settings.get_layout_assumptions(force_refresh=True)
    saved = layout_settings.save_layout_assumptions({**current, **payload})
    logger.info("Layout settings updated: %s", saved)
    return jsonify({"status": "ok", "settings": saved})


if __name__ == "__main__":
    app.run(debug=_is_local_dev_mode())
