# api/schools.py
import logging

from flask import Blueprint

from .common import get_store, portal_endpoint

logger = logging.getLogger(__name__)
schools_bp = Blueprint("schools_bp", __name__)


@schools_bp.route("/get_school_list", methods=["GET"])
@portal_endpoint("school_list_served")
def api_get_school_list():
    """Lists the schools served by this instance (no sign-in required)."""
    schools = [school.public_dict() for school in get_store().get_schools()]
    logger.info(f"Sent list of {len(schools)} schools")
    return {"schools": schools}
