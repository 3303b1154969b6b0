# api/admin.py
import logging

from flask import Blueprint, g, jsonify, request

from config import config
from sessions.errors import NotFound
from .common import (
    ValidationError,
    get_json_body,
    get_registry,
    get_store,
    portal_endpoint,
    require_fields,
)

logger = logging.getLogger(__name__)
admin_bp = Blueprint("admin_bp", __name__)


# --- Helper: Admin Authentication ---
def check_admin_secret():
    """Checks if the correct admin secret is provided in headers or args."""
    secret = request.headers.get("Admin-Secret") or request.args.get("secret")
    if not secret or secret != config.ADMIN_SECRET:
        g.log_outcome = "auth_error_admin"
        g.log_error_message = "Missing or invalid admin secret"
        return False
    return True


def _unauthorized():
    return jsonify({"status": "error", "message": "Unauthorized"}), 403


# --- Admin Endpoints ---


@admin_bp.route("/admin/sessions", methods=["GET"])
@portal_endpoint("admin_sessions_listed")
def admin_sessions():
    """Non-secret view of the remote sessions currently held in memory."""
    if not check_admin_secret():
        return _unauthorized()
    sessions = [remote.describe() for remote in get_registry().snapshot().values()]
    sessions.sort(key=lambda item: item["last_activity"], reverse=True)
    return {"count": len(sessions), "sessions": sessions}


@admin_bp.route("/admin/permissions", methods=["POST"])
@portal_endpoint("admin_permission_set")
def admin_set_permission():
    """
    Grants or revokes access.
    Expects JSON body: {"school_id": .., "permission": true|false, "username": optional}
    Without ``username`` the school-wide permission is changed.
    """
    if not check_admin_secret():
        return _unauthorized()
    data = get_json_body()
    (school_id,) = require_fields(data, "school_id")
    permission = data.get("permission")
    if not isinstance(permission, bool):
        raise ValidationError("'permission' must be true or false")
    username = data.get("username")
    store = get_store()
    try:
        if username:
            store.set_user_permission(username, school_id, permission)
        else:
            store.set_school_permission(school_id, permission)
    except NotFound as e:
        g.log_outcome = "not_found"
        g.log_error_message = str(e)
        return jsonify({"status": "error", "message": str(e)}), 404
    logger.info(f"Admin set permission={permission} for school {school_id} user {username or '*'}")
    return {"school_id": school_id, "username": username, "permission": permission}
