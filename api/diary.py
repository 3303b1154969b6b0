# api/diary.py
import logging

from flask import Blueprint

from utils.helpers import parse_portal_date, today_str
from .common import (
    ValidationError,
    call_portal,
    get_json_body,
    portal_endpoint,
    require_fields,
)

logger = logging.getLogger(__name__)
diary_bp = Blueprint("diary_bp", __name__)

MAX_SCHEDULE_DAYS = 7


def portal_date_field(data: dict, name: str) -> str:
    value = data.get(name)
    try:
        parse_portal_date(value)
    except ValueError:
        raise ValidationError(f"Invalid date in '{name}', expected dd.mm.yyyy") from None
    return value.strip()


def student_id_field(data: dict, name: str = "id") -> str:
    (value,) = require_fields(data, name)
    return str(value)


def _task_fields(data: dict) -> dict:
    aid, cid, tp = require_fields(data, "AID", "CID", "TP")
    return {
        "aid": str(aid),
        "cid": str(cid),
        "tp": str(tp),
        "student_id": student_id_field(data),
    }


@diary_bp.route("/get_children_map", methods=["GET"])
@portal_endpoint()
def api_get_children_map():
    children = call_portal("get_children_map")
    return {"children": children.as_mapping(), "is_parent": children.is_parent}


@diary_bp.route("/get_tasks_and_marks", methods=["POST"])
@portal_endpoint()
def api_get_tasks_and_marks():
    """Expects JSON body: {"week": "dd.mm.yyyy", "id": <student id>}"""
    data = get_json_body()
    week = portal_date_field(data, "week")
    return call_portal("get_week_school_marks", date=week, student_id=student_id_field(data))


@diary_bp.route("/get_lesson_description", methods=["POST"])
@portal_endpoint()
def api_get_lesson_description():
    """Expects JSON body: {"AID": .., "CID": .., "TP": .., "id": <student id>}"""
    return call_portal("get_lesson_description", **_task_fields(get_json_body()))


@diary_bp.route("/mark_as_done", methods=["POST"])
@portal_endpoint("marked_done")
def api_mark_as_done():
    call_portal("mark_as_done", **_task_fields(get_json_body()))
    return {"done": True}


@diary_bp.route("/unmark_as_done", methods=["POST"])
@portal_endpoint("unmarked_done")
def api_unmark_as_done():
    call_portal("unmark_as_done", **_task_fields(get_json_body()))
    return {"done": False}


@diary_bp.route("/get_schedule", methods=["POST"])
@portal_endpoint()
def api_get_schedule():
    """
    Timetable for ``days`` days starting today.
    Expects JSON body: {"days": 1..7, "id": <student id>}
    """
    data = get_json_body()
    (days,) = require_fields(data, "days")
    try:
        days = int(days)
    except (TypeError, ValueError):
        raise ValidationError("Invalid days number") from None
    if not 1 <= days <= MAX_SCHEDULE_DAYS:
        raise ValidationError("Invalid days number")
    return call_portal(
        "get_time_table", date=today_str(), days=days, student_id=student_id_field(data)
    )
