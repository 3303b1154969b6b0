# api/common.py
"""Glue shared by the blueprints: local session lookup, the orchestrated
portal call and the mapping of errors onto JSON responses."""
import functools
import logging

from flask import current_app, g, jsonify, request, session

from sessions.errors import LocalSessionError, PortalError

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Request body is missing a field or carries a malformed one."""


def get_store():
    return current_app.extensions["user_store"]


def get_registry():
    return current_app.extensions["session_registry"]


def get_orchestrator():
    return current_app.extensions["relogin_orchestrator"]


def get_json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Missing JSON request body")
    return data


def require_fields(data: dict, *names):
    missing = [name for name in names if data.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"Missing field(s): {', '.join(missing)}")
    return [data[name] for name in names]


def current_local_session() -> dict:
    """Returns ``{sid, username, school_id}`` from the signed cookie."""
    sid = session.get("sid")
    username = session.get("username")
    school_id = session.get("school_id")
    if not sid or not username or school_id is None:
        raise LocalSessionError(log_message="Request carries no local session")
    g.username = username
    return {"sid": sid, "username": username, "school_id": school_id}


def auth_data_resolver(username: str, school_id):
    """Builds the callback the registry uses to fetch stored credentials."""
    store = get_store()

    def resolve():
        return store.get_user_auth_data(username, school_id)

    return resolve


def call_portal(operation: str, **params):
    """Runs ``operation`` for the signed-in user through the relogin policy."""
    local = current_local_session()
    return get_orchestrator().fetch(
        local["sid"],
        auth_data_resolver(local["username"], local["school_id"]),
        operation,
        **params,
    )


def to_jsonable(value):
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [to_jsonable(item) for item in value]
    if isinstance(value, dict):
        return {key: to_jsonable(item) for key, item in value.items()}
    return value


def error_response(e: PortalError):
    g.log_outcome = e.log_outcome
    g.log_error_message = e.log_message
    return jsonify({"status": "error", "message": str(e)}), e.status_code


def portal_endpoint(outcome: str = "success"):
    """
    Decorator turning a handler's return value into a JSON response and its
    errors into the matching status codes. Handlers return plain data (domain
    values are serialised via ``to_dict``) or a ready Flask response tuple.
    """

    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            try:
                result = view(*args, **kwargs)
            except ValidationError as e:
                g.log_outcome = "validation_error"
                g.log_error_message = str(e)
                return jsonify({"status": "error", "message": str(e)}), 400
            except PortalError as e:
                logger.warning(f"{request.path} failed for {g.get('username')}: {e.log_message}")
                return error_response(e)
            except Exception as e:
                logger.exception(f"Unhandled error in {request.path}: {e}")
                g.log_outcome = "internal_error_unhandled"
                g.log_error_message = f"Unhandled error: {e}"
                return (
                    jsonify({"status": "error", "message": "An internal server error occurred"}),
                    500,
                )
            if isinstance(result, tuple):
                return result
            if g.get("log_outcome") in (None, "unknown"):
                g.log_outcome = outcome
            return jsonify({"status": "success", "data": to_jsonable(result)}), 200

        return wrapper

    return decorator
