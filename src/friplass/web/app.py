"""HTTP API for Friplass listings, uploads and maintenance."""

import hmac
import logging
import os
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, jsonify, request, send_from_directory

from ..config import is_production, load_config
from ..models.listing import FilterSpec
from ..services.filtering import filter_and_sort, owned_by
from ..services.repository import (
    JsonFileRecordStore,
    ListingRepository,
    NotFoundError,
    RecordStoreError,
)
from ..services.uploads import UploadError, UploadStore

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__, url_prefix="/api")

NOT_FOUND_MESSAGE = "Annonsen kan ha blitt slettet."
STORE_ERROR_MESSAGE = "Kunne ikke lagre annonse. Prøv igjen."


def create_app(
    config: Optional[Dict[str, Any]] = None,
    repository: Optional[ListingRepository] = None,
    uploads: Optional[UploadStore] = None,
) -> Flask:
    """
    Build the Flask application.

    Args:
        config: Loaded configuration (load_config() when omitted)
        repository: Listing repository (JSON file from config when omitted)
        uploads: Upload store (upload directory from config when omitted)

    Returns:
        Configured Flask app
    """
    config = config if config is not None else load_config()
    storage = config["storage"]

    app = Flask(__name__)
    app.json.sort_keys = False
    app.json.ensure_ascii = False
    app.config["FRIPLASS"] = config

    app.extensions["friplass.repository"] = repository or ListingRepository(
        JsonFileRecordStore(storage["listings_path"])
    )
    upload_store = uploads or UploadStore(storage["uploads_dir"], storage["uploads_url_prefix"])
    app.extensions["friplass.uploads"] = upload_store

    app.register_blueprint(api)
    app.add_url_rule(
        f"{upload_store.url_prefix}/<path:name>",
        endpoint="uploaded_file",
        view_func=_serve_upload,
    )

    logger.info(f"Listings stored in {storage['listings_path']}")
    return app


def _repository() -> ListingRepository:
    return current_app.extensions["friplass.repository"]


def _uploads() -> UploadStore:
    return current_app.extensions["friplass.uploads"]


def _json_body() -> Dict[str, Any]:
    """Request JSON as an object; anything else counts as an empty object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _serve_upload(name):
    return send_from_directory(os.path.abspath(_uploads().upload_dir), name)


# Errors


@api.errorhandler(NotFoundError)
def handle_not_found(error):
    return jsonify({"error": "Not found", "message": NOT_FOUND_MESSAGE}), 404


@api.errorhandler(RecordStoreError)
def handle_store_error(error):
    logger.error(f"Record store failure: {error}")
    return jsonify({"ok": False, "error": STORE_ERROR_MESSAGE}), 500


@api.errorhandler(UploadError)
def handle_upload_error(error):
    return jsonify(error.to_dict()), error.status


# Listings


@api.route("/listings", methods=["GET"])
def list_listings():
    """Return all listings in stored order."""
    return jsonify(_repository().list())


@api.route("/listings/<listing_id>", methods=["GET"])
def get_listing(listing_id):
    """Return a single listing."""
    return jsonify(_repository().get(listing_id))


@api.route("/listings", methods=["POST"])
def create_listing():
    """Publish a draft."""
    result = _repository().create(_json_body())
    if not result.ok:
        return jsonify({"ok": False, "problems": result.problems}), 400
    return jsonify(result.listing), 201


@api.route("/listings/<listing_id>", methods=["PUT"])
def update_listing(listing_id):
    """Overwrite fields of a listing; id and createdAt never change."""
    return jsonify(_repository().update(listing_id, _json_body()))


@api.route("/listings/<listing_id>", methods=["DELETE"])
def delete_listing(listing_id):
    _repository().delete(listing_id)
    return jsonify({"ok": True})


@api.route("/explore", methods=["GET"])
def explore():
    """
    Filtered and sorted listings.

    Query params: category, q, sort, favorites (flag), favorite_ids
    (comma separated), owner (device id for the my-listings view).
    """
    filters = FilterSpec.from_params(request.args)
    favorite_ids = [
        value.strip()
        for value in request.args.get("favorite_ids", "").split(",")
        if value.strip()
    ]

    listings = _repository().list()
    owner = request.args.get("owner")
    if owner is not None:
        listings = owned_by(listings, owner)

    return jsonify(filter_and_sort(listings, filters, favorite_ids))


@api.route("/stats", methods=["GET"])
def stats():
    """Return listing counts per category."""
    counts = _repository().counts_by_category()
    return jsonify({"total": sum(counts.values()), "byCategory": counts})


# Uploads


@api.route("/uploads", methods=["POST"])
def upload_file():
    """Store one uploaded image; returns its URL."""
    files = request.files.getlist("files") or request.files.getlist("file")
    return jsonify(_uploads().save(files[0] if files else None))


@api.route("/uploads", methods=["DELETE"])
def delete_upload():
    """Best-effort removal of an image dropped from a draft."""
    deleted = _uploads().delete_best_effort(_json_body().get("url"))
    return jsonify({"ok": True, "deleted": deleted})


# Maintenance


def _check_migrate_secret(config: Dict[str, Any], secret: str):
    """Return an error response if the caller may not run the migration."""
    expected = config.get("admin", {}).get("migrate_secret") or ""
    if expected:
        if not hmac.compare_digest(secret.encode("utf-8"), expected.encode("utf-8")):
            return jsonify({"ok": False, "error": "Unauthorized (bad secret)"}), 401
        return None

    if is_production(config):
        return jsonify({
            "ok": False,
            "error": "Migration disabled in production without MIGRATE_SECRET. "
                     "Set env MIGRATE_SECRET to enable.",
        }), 403
    if not secret:
        return jsonify({
            "ok": False,
            "error": "Missing secret. In development any secret works, e.g. ?secret=dev",
        }), 400
    return None


@api.route("/admin/migrate-category", methods=["GET"])
def migrate_category():
    """Give every stored listing a canonical category; safe to re-run."""
    denied = _check_migrate_secret(current_app.config["FRIPLASS"], request.args.get("secret", ""))
    if denied is not None:
        return denied

    dry_run = request.args.get("dry_run", "").lower() in FilterSpec.TRUTHY
    report = _repository().migrate_categories(dry_run=dry_run)
    return jsonify(report.to_dict())


if __name__ == "__main__":
    from ..utils.logging import setup_logging

    setup_logging()
    app = create_app()
    server = app.config["FRIPLASS"]["server"]
    print(f"Starting server at http://{server['host']}:{server['port']}")
    app.run(host=server["host"], port=server["port"], debug=server["debug"])
