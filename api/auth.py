# api/auth.py
import logging
import secrets
import time

from flask import Blueprint, g, jsonify, session

from scraping.models import Credentials
from sessions.errors import NotFound, PortalError, RemoteError
from .common import (
    ValidationError,
    current_local_session,
    get_json_body,
    get_registry,
    get_store,
    portal_endpoint,
    require_fields,
)

logger = logging.getLogger(__name__)
auth_bp = Blueprint("auth_bp", __name__)


def is_permitted(store, username: str, school_id) -> bool:
    """
    A school-wide permission admits everybody. Otherwise the user's own flag
    decides, and a user the store has never seen counts as permitted.
    """
    try:
        if store.get_school_permission(school_id):
            return True
    except NotFound:
        raise ValidationError("Invalid id param specified") from None
    try:
        return store.get_user_permission(username, school_id)
    except NotFound:
        logger.info(f"Unknown user {username} for school {school_id}; permitted as new.")
        return True


def logout_quietly(remote, username: str):
    """Best-effort portal logout; a failure is only logged."""
    try:
        remote.logout()
    except RemoteError as e:
        logger.warning(f"Remote logout failed for {username}: {e.log_message}")


def _school_id(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid id param specified") from None


@auth_bp.route("/check_permission", methods=["POST"])
@portal_endpoint("permission_checked")
def api_check_permission():
    """Expects JSON body: {"login": "...", "id": <school id>}"""
    data = get_json_body()
    username, school_id = require_fields(data, "login", "id")
    g.username = username
    return {"permission": is_permitted(get_store(), username, _school_id(school_id))}


@auth_bp.route("/sign_in", methods=["POST"])
@portal_endpoint("login_success")
def api_sign_in():
    """
    Signs in to the school portal and opens a local session.
    Expects JSON body: {"login": "...", "passkey": "...", "id": <school id>}
    Returns the children map of the account.
    """
    data = get_json_body()
    username, password, school_id = require_fields(data, "login", "passkey", "id")
    school_id = _school_id(school_id)
    g.username = username
    store = get_store()
    registry = get_registry()

    if not is_permitted(store, username, school_id):
        logger.info(f"Access to service denied for {username}@{school_id}")
        g.log_outcome = "permission_denied"
        g.log_error_message = "Access to service denied"
        return jsonify({"status": "error", "message": "Access to service denied"}), 403

    school = store.get_school(school_id)
    remote = registry.create(school, Credentials(username=username, password=password))
    remote.login()
    try:
        children = remote.fetch("get_children_map")
        remote.children_map = children.as_mapping()
        remote.is_parent = children.is_parent
        store.update_user(username, password, children.is_parent, school_id, remote.children_map)
    except PortalError:
        logout_quietly(remote, username)
        raise

    # A repeat sign-in from the same browser replaces its previous session
    previous_sid = session.get("sid")
    if previous_sid:
        previous = registry.pop(previous_sid)
        if previous is not None:
            logout_quietly(previous, previous.username)

    sid = secrets.token_hex(16)
    registry.insert(sid, remote)
    session.clear()
    session.permanent = True
    session["sid"] = sid
    session["username"] = username
    session["school_id"] = school_id
    session["created_at"] = int(time.time())

    logger.info(f"Successfully signed in as user {username} (school {school_id})")
    return {"children": remote.children_map, "is_parent": children.is_parent}


@auth_bp.route("/test_login", methods=["POST"])
@portal_endpoint("test_login_success")
def api_test_login():
    """
    Tests credentials against the portal without storing anything.
    Expects JSON body: {"login": "...", "passkey": "...", "id": <school id>}
    """
    data = get_json_body()
    username, password, school_id = require_fields(data, "login", "passkey", "id")
    g.username = username
    store = get_store()
    try:
        school = store.get_school(_school_id(school_id))
    except NotFound:
        raise ValidationError("Invalid id param specified") from None

    remote = get_registry().create(school, Credentials(username=username, password=password))
    remote.login()
    logout_quietly(remote, username)
    return {"message": "Credentials are valid (Test Only)"}


@auth_bp.route("/log_out", methods=["GET"])
@portal_endpoint("logout_success")
def api_log_out():
    """Logs the portal session out (best effort) and drops the local one."""
    local = current_local_session()
    remote = get_registry().pop(local["sid"])
    if remote is not None:
        logout_quietly(remote, local["username"])
    session.clear()
    logger.info(f"Successful logout for {local['username']}")
    return {"message": "Logged out"}
