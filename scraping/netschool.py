# scraping/netschool.py
"""Adapter for NetSchool portals (type "01").

Login is a salted challenge: ``webapi/auth/getdata`` hands out ``lt``, ``ver``
and a salt, the form posts ``md5(salt + md5(password))`` to ``login.asp``, and
the resulting page carries the ``AT`` and ``VER`` tokens every later page
request must echo back.
"""
import logging

from config import config
from sessions.errors import AuthError, LoggedOutError, RemoteError
from utils.helpers import inc_date, portal_password_hash, week_start
from .base import PortalAdapter, register_portal
from .board import parse_mail_description, parse_mail_list, parse_posts, parse_resources
from .core import create_session, make_request
from .marks import parse_children_map, parse_lesson_description, parse_week_marks
from .models import TimeTable
from .reports import (
    parse_average_mark_dyn_report,
    parse_average_mark_report,
    parse_lessons_map,
    parse_parent_info_letter,
    parse_student_total_report,
    parse_total_mark_report,
)
from .schedule import parse_day_timetable

logger = logging.getLogger(__name__)

# Page fragments the portal shows instead of content once AT is no longer valid
LOGGED_OUT_MARKERS = (
    "Ваш сеанс работы завершен",
    "Сеанс работы завершен",
    "Доступ к странице запрещен",
    "Session expired",
)
BAD_CREDENTIALS_MARKERS = (
    "Неправильный пароль",
    "Неверное имя пользователя",
    "Неправильное имя пользователя",
    "Invalid user name or password",
)
AUTH_FORM_FIELDS = ("CID", "SID", "PID", "CN", "SFT", "SCID")

MAX_TIMETABLE_DAYS = 7


def _is_logged_out_page(response) -> bool:
    text = response.text or ""
    return any(marker in text for marker in LOGGED_OUT_MARKERS)


@register_portal("01")
class NetSchoolAdapter(PortalAdapter):
    OPERATIONS = frozenset(
        {
            "get_children_map",
            "get_lessons_map",
            "get_time_table",
            "get_week_school_marks",
            "get_lesson_description",
            "mark_as_done",
            "unmark_as_done",
            "get_total_mark_report",
            "get_average_mark_report",
            "get_average_mark_dyn_report",
            "get_student_total_report",
            "get_parent_info_letter_report",
            "get_posts",
            "get_mail",
            "get_mail_description",
            "delete_mail",
            "get_resources",
        }
    )

    def __init__(self, school, credentials, http_factory=create_session):
        super().__init__(school, credentials)
        self._http_factory = http_factory
        self.http = None
        self.at = None
        self.ver = None

    # --- Session plumbing ---

    def reset(self) -> None:
        if self.http is not None:
            self.http.close()
        self.http = self._http_factory()
        self.at = None
        self.ver = None

    def _url(self, path: str) -> str:
        return f"{self.school.website}/{path.lstrip('/')}"

    def _post(self, path: str, data: dict | None = None, **kwargs):
        """POSTs a portal page with the session tokens attached."""
        if not self.at or self.http is None:
            raise LoggedOutError(log_message="No portal session tokens held")
        payload = {"AT": self.at, "VER": self.ver}
        payload.update(data or {})
        return make_request(
            self.http,
            self._url(path),
            method="POST",
            data=payload,
            logged_out_check=_is_logged_out_page,
            timeout=kwargs.pop("timeout", config.DEFAULT_REQUEST_TIMEOUT),
            **kwargs,
        )

    # --- Authentication ---

    def login(self) -> None:
        self.reset()
        username = self.credentials.username
        password = self.credentials.password
        logger.info(f"Logging in to {self.school.website} as {username}")

        try:
            make_request(self.http, self._url("/"), method="GET", detect_login_redirect=False)
            auth_data = make_request(
                self.http,
                self._url("/webapi/auth/getdata"),
                method="POST",
                detect_login_redirect=False,
            ).json()
        except LoggedOutError as e:
            # Nothing to be logged out of yet: the portal is refusing us outright.
            raise RemoteError(log_message=f"Portal refused the login handshake: {e.log_message}") from e
        except ValueError as e:
            raise RemoteError(log_message=f"Malformed getdata payload: {e}") from e

        try:
            salt, lt, ver = auth_data["salt"], auth_data["lt"], auth_data["ver"]
        except (KeyError, TypeError) as e:
            raise RemoteError(log_message=f"getdata payload lacks {e}") from e

        try:
            pw2 = portal_password_hash(salt, password)
        except UnicodeEncodeError:
            # No such password can exist on a cp1251 portal
            raise AuthError(
                log_message=f"Password of {username} is not representable in cp1251"
            ) from None
        form = {"LOGINTYPE": "1"}
        for field in AUTH_FORM_FIELDS:
            form[field] = str(self.school.auth.get(field, ""))
        form.update(
            {
                "UN": username,
                "PW": pw2[: len(password)],
                "lt": lt,
                "pw2": pw2,
                "ver": ver,
            }
        )
        try:
            response = make_request(
                self.http,
                self._url("/login.asp"),
                method="POST",
                data=form,
                detect_login_redirect=False,
            )
        except LoggedOutError as e:
            raise AuthError(log_message=f"Portal refused login for {username}: {e.log_message}") from e

        soup = self.soup(response.text)
        if "SecurityWarning" in response.url:
            # Portal asks to confirm a second active session before letting us in
            soup = self._confirm_security_warning(soup)

        at_input = soup.find("input", attrs={"name": "AT"})
        ver_input = soup.find("input", attrs={"name": "VER"})
        if at_input is None or not at_input.get("value"):
            page_text = soup.get_text(" ", strip=True)
            if any(marker in page_text for marker in BAD_CREDENTIALS_MARKERS):
                logger.warning(f"Portal rejected credentials for {username}")
                raise AuthError(log_message=f"Bad credentials for {username}")
            raise RemoteError(log_message="Login page carried no AT token")

        self.at = at_input["value"]
        self.ver = ver_input.get("value") if ver_input else ver
        logger.info(f"Logged in to {self.school.website} as {username}")

    def _confirm_security_warning(self, soup):
        at_input = soup.find("input", attrs={"name": "AT"})
        ver_input = soup.find("input", attrs={"name": "VER"})
        if at_input is None:
            return soup
        response = make_request(
            self.http,
            self._url("/asp/SecurityWarning.asp"),
            method="POST",
            data={
                "AT": at_input.get("value", ""),
                "VER": ver_input.get("value", "") if ver_input else "",
                "WarnType": "2",
            },
            detect_login_redirect=False,
        )
        return self.soup(response.text)

    def logout(self) -> None:
        if not self.at:
            return
        try:
            self._post("/asp/logout.asp")
        except LoggedOutError:
            logger.info("Portal session was already gone at logout.")
        finally:
            self.at = None
            self.ver = None

    # --- Children and subjects ---

    def get_children_map(self):
        response = self._post("/asp/Curriculum/Assignments.asp")
        return parse_children_map(response.text, self.credentials.username)

    def get_lessons_map(self, student_id: str):
        response = self._post("/asp/Reports/ReportStudentGrades.asp", {"SID": student_id})
        return parse_lessons_map(response.text)

    # --- Schedule, tasks and marks ---

    def get_time_table(self, date: str, days: int, student_id: str) -> TimeTable:
        if not 1 <= int(days) <= MAX_TIMETABLE_DAYS:
            raise ValueError("Invalid days number")
        result = []
        for _ in range(int(days)):
            response = self._post(
                "/asp/Calendar/DayViews.asp", {"DATE": date, "SID": student_id}
            )
            result.append(parse_day_timetable(response.text, date))
            date = inc_date(date)
        return TimeTable(days=tuple(result))

    def get_week_school_marks(self, date: str, student_id: str):
        response = self._post(
            "/asp/Curriculum/Assignments.asp",
            {"DATE": week_start(date), "SID": student_id},
        )
        return parse_week_marks(response.text)

    def get_lesson_description(self, aid, cid, tp, student_id: str):
        response = self._post(
            "/asp/ajax/Assignments/PreviewAssignment.asp",
            {"AID": aid, "CID": cid, "TP": tp, "SID": student_id},
        )
        return parse_lesson_description(response.text, self.school.website)

    def mark_as_done(self, aid, cid, tp, student_id: str) -> None:
        self._set_done(aid, cid, tp, student_id, done=True)

    def unmark_as_done(self, aid, cid, tp, student_id: str) -> None:
        self._set_done(aid, cid, tp, student_id, done=False)

    def _set_done(self, aid, cid, tp, student_id, done: bool) -> None:
        self._post(
            "/asp/ajax/Assignments/MarkAsDone.asp",
            {"AID": aid, "CID": cid, "TP": tp, "SID": student_id, "DONE": "1" if done else "0"},
        )

    # --- Reports ---

    def get_total_mark_report(self, student_id: str):
        response = self._post("/asp/Reports/ReportStudentTotalMarks.asp", {"SID": student_id})
        return parse_total_mark_report(response.text)

    def get_average_mark_report(self, date_from: str, date_to: str, mark_type: str, student_id: str):
        response = self._post(
            "/asp/Reports/ReportStudentAverageMark.asp",
            {"SID": student_id, "ADT": date_from, "DDT": date_to, "MT": mark_type},
        )
        return parse_average_mark_report(response.text)

    def get_average_mark_dyn_report(self, date_from: str, date_to: str, mark_type: str, student_id: str):
        response = self._post(
            "/asp/Reports/ReportStudentAverageMarkDyn.asp",
            {"SID": student_id, "ADT": date_from, "DDT": date_to, "MT": mark_type},
        )
        return parse_average_mark_dyn_report(response.text)

    def get_student_total_report(self, date_from: str, date_to: str, student_id: str):
        response = self._post(
            "/asp/Reports/ReportStudentTotal.asp",
            {"SID": student_id, "ADT": date_from, "DDT": date_to},
        )
        return parse_student_total_report(response.text)

    def get_parent_info_letter_report(self, student_id: str, report_type_id: str, period_id: str):
        response = self._post(
            "/asp/Reports/ReportParentInfoLetter.asp",
            {"SID": student_id, "RTID": report_type_id, "TERMID": period_id},
        )
        return parse_parent_info_letter(response.text)

    # --- Posts, mail, resources ---

    def get_posts(self):
        response = self._post("/asp/Announcements/ViewAnnouncements.asp")
        return parse_posts(response.text, self.school.website)

    def get_mail(self, section: int, start: int, end: int):
        response = self._post(
            "/asp/ajax/GetMessagesAjax.asp",
            {
                "nBoxID": section,
                "jtStartIndex": start,
                "jtPageSize": max(end - start, 0),
                "jtSorting": "Sent DESC",
            },
        )
        return parse_mail_list(response.json())

    def get_mail_description(self, message_id: str, box_id: str):
        response = self._post(
            "/asp/Messages/readmessage.asp", {"MID": message_id, "MBID": box_id}
        )
        return parse_mail_description(response.text, message_id, self.school.website)

    def delete_mail(self, box_id: str, message_ids: list) -> None:
        self._post(
            "/asp/Messages/deletemessages.asp",
            {"MBID": box_id, "deletedMessages": ";".join(str(m) for m in message_ids)},
        )

    def get_resources(self):
        response = self._post("/asp/Curriculum/SchoolResources.asp")
        return parse_resources(response.text, self.school.website)
