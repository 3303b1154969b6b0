# api/board.py
# Announcements, mail and school resources.
import logging

from flask import Blueprint, g

from .common import (
    ValidationError,
    call_portal,
    get_json_body,
    portal_endpoint,
    require_fields,
)

logger = logging.getLogger(__name__)
board_bp = Blueprint("board_bp", __name__)


def _int_field(data: dict, name: str, minimum: int = 0) -> int:
    (value,) = require_fields(data, name)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{name}' must be an integer") from None
    if value < minimum:
        raise ValidationError(f"'{name}' must be >= {minimum}")
    return value


@board_bp.route("/get_posts", methods=["GET"])
@portal_endpoint()
def api_get_posts():
    return call_portal("get_posts")


@board_bp.route("/get_mail", methods=["POST"])
@portal_endpoint()
def api_get_mail():
    """Expects JSON body: {"section": <box id>, "startInd": n, "endInd": m}"""
    data = get_json_body()
    section = _int_field(data, "section", minimum=1)
    start = _int_field(data, "startInd")
    end = _int_field(data, "endInd")
    if end < start:
        raise ValidationError("'endInd' must not be less than 'startInd'")
    return call_portal("get_mail", section=section, start=start, end=end)


@board_bp.route("/get_mail_description", methods=["POST"])
@portal_endpoint()
def api_get_mail_description():
    """Expects JSON body: {"messageID": .., "boxID": ..}"""
    data = get_json_body()
    message_id, box_id = require_fields(data, "messageID", "boxID")
    return call_portal("get_mail_description", message_id=str(message_id), box_id=str(box_id))


@board_bp.route("/delete_mail", methods=["POST"])
@portal_endpoint("mail_deleted")
def api_delete_mail():
    """Expects JSON body: {"boxID": .., "messagesID": [..]}"""
    data = get_json_body()
    box_id, message_ids = require_fields(data, "boxID", "messagesID")
    if not isinstance(message_ids, list) or not message_ids:
        raise ValidationError("'messagesID' must be a non-empty list")
    call_portal("delete_mail", box_id=str(box_id), message_ids=[str(m) for m in message_ids])
    logger.info(f"Deleted {len(message_ids)} letters for {g.get('username')}")
    return {"deleted": len(message_ids)}


@board_bp.route("/get_resources", methods=["GET"])
@portal_endpoint()
def api_get_resources():
    return call_portal("get_resources")
