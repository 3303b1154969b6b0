# api/reports.py
import logging

from flask import Blueprint

from .common import call_portal, get_json_body, portal_endpoint, require_fields
from .diary import portal_date_field, student_id_field

logger = logging.getLogger(__name__)
reports_bp = Blueprint("reports_bp", __name__)


def _average_fields(data: dict) -> dict:
    (mark_type,) = require_fields(data, "type")
    return {
        "date_from": portal_date_field(data, "from"),
        "date_to": portal_date_field(data, "to"),
        "mark_type": str(mark_type),
        "student_id": student_id_field(data),
    }


@reports_bp.route("/get_report_student_total_marks", methods=["POST"])
@portal_endpoint()
def api_report_student_total_marks():
    data = get_json_body()
    return call_portal("get_total_mark_report", student_id=student_id_field(data))


@reports_bp.route("/get_report_student_average_mark", methods=["POST"])
@portal_endpoint()
def api_report_student_average_mark():
    """Expects JSON body: {"id": .., "type": .., "from": "dd.mm.yyyy", "to": "dd.mm.yyyy"}"""
    return call_portal("get_average_mark_report", **_average_fields(get_json_body()))


@reports_bp.route("/get_report_student_average_mark_dyn", methods=["POST"])
@portal_endpoint()
def api_report_student_average_mark_dyn():
    return call_portal("get_average_mark_dyn_report", **_average_fields(get_json_body()))


@reports_bp.route("/get_report_student_grades_lesson_list", methods=["POST"])
@portal_endpoint()
def api_report_student_grades_lesson_list():
    data = get_json_body()
    return call_portal("get_lessons_map", student_id=student_id_field(data))


@reports_bp.route("/get_report_student_total", methods=["POST"])
@portal_endpoint()
def api_report_student_total():
    """Expects JSON body: {"id": .., "from": "dd.mm.yyyy", "to": "dd.mm.yyyy"}"""
    data = get_json_body()
    return call_portal(
        "get_student_total_report",
        date_from=portal_date_field(data, "from"),
        date_to=portal_date_field(data, "to"),
        student_id=student_id_field(data),
    )


@reports_bp.route("/get_report_parent_info_letter", methods=["POST"])
@portal_endpoint()
def api_report_parent_info_letter():
    """Expects JSON body: {"student_id": .., "report_type_id": .., "period_id": ..}"""
    data = get_json_body()
    student_id, report_type_id, period_id = require_fields(
        data, "student_id", "report_type_id", "period_id"
    )
    return call_portal(
        "get_parent_info_letter_report",
        student_id=str(student_id),
        report_type_id=str(report_type_id),
        period_id=str(period_id),
    )
