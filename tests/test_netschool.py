from functools import partial

import pytest
import requests

from scraping.base import get_portal
from scraping.models import Credentials, School
from scraping.netschool import NetSchoolAdapter
from sessions.errors import AuthError, LoggedOutError, RemoteError
from sessions.orchestrator import ReloginOrchestrator
from sessions.registry import SessionRegistry
from sessions.remote import RemoteSession
from utils.helpers import portal_password_hash

SCHOOL = School(
    id=1,
    name="Школа №1",
    website="https://netschool.test",
    type="01",
    auth={"CID": "2", "SID": "1", "PID": "-1", "CN": "1", "SFT": "2", "SCID": "1"},
)

HOME_PAGE = "<html><body>Сетевой город</body></html>"
GETDATA = b'{"lt": "123456", "ver": "777", "salt": "98765"}'
LOGGED_IN_PAGE = """
<form name="main">
  <input type="hidden" name="AT" value="AT-TOKEN">
  <input type="hidden" name="VER" value="VER-1">
</form>
"""
BAD_CREDENTIALS_PAGE = "<html><body><p>Неправильный пароль или имя пользователя</p></body></html>"
EXPIRED_PAGE = "<html><body>Ваш сеанс работы завершен. Войдите заново.</body></html>"


def make_response(url, body="", status=200, history=None):
    response = requests.Response()
    response.status_code = status
    response._content = body.encode("utf-8") if isinstance(body, str) else body
    response.encoding = "utf-8"
    response.url = url
    response.history = history or []
    return response


class FakeHTTP:
    """Stands in for requests.Session; answers by URL path from a routing table."""

    def __init__(self, routes):
        self.routes = routes
        self.requests = []
        self.closed = False

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append((method, url, kwargs.get("data")))
        path = url.split("netschool.test", 1)[1] or "/"
        answer = self.routes[path]
        if callable(answer):
            answer = answer(url, kwargs.get("data"))
        if isinstance(answer, requests.Response):
            return answer
        return make_response(url, answer)

    def close(self):
        self.closed = True

    def posted(self, path):
        return [data for method, url, data in self.requests if url.endswith(path)]


def login_routes(**extra):
    routes = {
        "/": HOME_PAGE,
        "/webapi/auth/getdata": GETDATA,
        "/login.asp": LOGGED_IN_PAGE,
        "/asp/logout.asp": "",
    }
    routes.update(extra)
    return routes


@pytest.fixture
def http():
    return FakeHTTP(login_routes())


@pytest.fixture
def adapter(http):
    return NetSchoolAdapter(SCHOOL, Credentials("ivanov", "Пароль1"), http_factory=lambda: http)


def test_type_tag_is_registered():
    assert get_portal("01") is NetSchoolAdapter


def test_login_posts_salted_hash_and_keeps_tokens(adapter, http):
    adapter.login()

    assert adapter.at == "AT-TOKEN"
    assert adapter.ver == "VER-1"
    (form,) = http.posted("/login.asp")
    pw2 = portal_password_hash("98765", "Пароль1")
    assert form["pw2"] == pw2
    assert form["PW"] == pw2[: len("Пароль1")]
    assert form["UN"] == "ivanov"
    assert form["lt"] == "123456"
    assert form["SCID"] == "1" and form["LOGINTYPE"] == "1"


def test_login_with_bad_credentials(http, adapter):
    http.routes["/login.asp"] = BAD_CREDENTIALS_PAGE
    with pytest.raises(AuthError):
        adapter.login()
    assert adapter.at is None


def test_login_page_without_token_is_remote_error(http, adapter):
    http.routes["/login.asp"] = "<html>Технические работы</html>"
    with pytest.raises(RemoteError):
        adapter.login()


def test_malformed_getdata_is_remote_error(http, adapter):
    http.routes["/webapi/auth/getdata"] = "<html>not json</html>"
    with pytest.raises(RemoteError):
        adapter.login()


def test_portal_http_failure_is_remote_error(http, adapter):
    http.routes["/webapi/auth/getdata"] = lambda url, data: make_response(url, "oops", status=500)
    with pytest.raises(RemoteError):
        adapter.login()


def test_operations_require_login(adapter):
    with pytest.raises(LoggedOutError):
        adapter.get_posts()


def test_expired_session_page_is_logged_out(http, adapter):
    http.routes["/asp/Announcements/ViewAnnouncements.asp"] = EXPIRED_PAGE
    adapter.login()
    with pytest.raises(LoggedOutError):
        adapter.get_posts()


def test_redirect_to_login_page_is_logged_out(http, adapter):
    def redirected(url, data):
        hop = make_response(url, "", status=302)
        hop.headers["Location"] = "/about.asp?AL=Y"
        return make_response("https://netschool.test/about.asp?AL=Y", HOME_PAGE, history=[hop])

    http.routes["/asp/Curriculum/SchoolResources.asp"] = redirected
    adapter.login()
    with pytest.raises(LoggedOutError):
        adapter.get_resources()


def test_forbidden_is_logged_out(http, adapter):
    http.routes["/asp/Announcements/ViewAnnouncements.asp"] = lambda url, data: make_response(
        url, "", status=403
    )
    adapter.login()
    with pytest.raises(LoggedOutError):
        adapter.get_posts()


def test_requests_carry_tokens(http, adapter):
    http.routes["/asp/Curriculum/Assignments.asp"] = (
        '<select name="SID"><option value="101">Иванов Иван</option></select>'
    )
    adapter.login()

    children = adapter.get_children_map()

    assert children.as_mapping() == {"Иванов Иван": "101"}
    (form,) = http.posted("/asp/Curriculum/Assignments.asp")
    assert form["AT"] == "AT-TOKEN" and form["VER"] == "VER-1"


def test_week_marks_ask_for_monday(http, adapter):
    http.routes["/asp/Curriculum/Assignments.asp"] = "<table class='diary'></table>"
    adapter.login()

    adapter.get_week_school_marks("05.09.2024", "101")

    (form,) = http.posted("/asp/Curriculum/Assignments.asp")
    assert form["DATE"] == "02.09.2024"
    assert form["SID"] == "101"


def test_time_table_fetches_each_day(http, adapter):
    http.routes["/asp/Calendar/DayViews.asp"] = (
        '<table class="schedule-table"><tr><td>08:30 - 09:15</td><td>Урок: Химия</td></tr></table>'
    )
    adapter.login()

    table = adapter.get_time_table("30.09.2024", 3, "101")

    assert [d.date for d in table.days] == ["30.09.2024", "01.10.2024", "02.10.2024"]
    assert [form["DATE"] for form in http.posted("/asp/Calendar/DayViews.asp")] == [
        "30.09.2024",
        "01.10.2024",
        "02.10.2024",
    ]


@pytest.mark.parametrize("days", [0, 8])
def test_time_table_rejects_day_counts(adapter, days):
    adapter.login()
    with pytest.raises(ValueError):
        adapter.get_time_table("30.09.2024", days, "101")


def test_mark_as_done_flags(http, adapter):
    http.routes["/asp/ajax/Assignments/MarkAsDone.asp"] = "OK"
    adapter.login()

    adapter.mark_as_done("11", "22", "3", "101")
    adapter.unmark_as_done("11", "22", "3", "101")

    done, undone = http.posted("/asp/ajax/Assignments/MarkAsDone.asp")
    assert (done["DONE"], undone["DONE"]) == ("1", "0")
    assert done["AID"] == "11"


def test_mail_list_and_delete(http, adapter):
    http.routes["/asp/ajax/GetMessagesAjax.asp"] = (
        b'{"Records": [{"MessageId": 1, "FromName": "A", "Subj": "B", "Sent": "C", "Read": "Y"}],'
        b' "TotalRecordCount": 1}'
    )
    http.routes["/asp/Messages/deletemessages.asp"] = ""
    adapter.login()

    mail = adapter.get_mail(1, 0, 20)
    adapter.delete_mail("1", ["5", "6"])

    assert mail["total"] == 1
    (query,) = http.posted("/asp/ajax/GetMessagesAjax.asp")
    assert query["jtPageSize"] == 20
    (deletion,) = http.posted("/asp/Messages/deletemessages.asp")
    assert deletion["deletedMessages"] == "5;6"


def test_logout_forgets_tokens_even_if_portal_already_dropped_us(http, adapter):
    adapter.login()
    http.routes["/asp/logout.asp"] = EXPIRED_PAGE

    adapter.logout()

    assert adapter.at is None


def test_relogin_starts_from_a_fresh_http_session(adapter, http):
    adapter.login()
    adapter.login()
    assert http.closed is True
    assert len(http.posted("/login.asp")) == 2


def test_password_outside_portal_charset_is_auth_error(http):
    adapter = NetSchoolAdapter(SCHOOL, Credentials("ivanov", "パスワード"), http_factory=lambda: http)

    with pytest.raises(AuthError):
        adapter.login()
    assert http.posted("/login.asp") == []


def timing_out(url, data):
    raise requests.exceptions.ReadTimeout(f"read timed out: {url}")


def test_portal_timeout_is_remote_error(http, adapter):
    http.routes["/asp/Announcements/ViewAnnouncements.asp"] = timing_out
    adapter.login()

    with pytest.raises(RemoteError) as exc_info:
        adapter.get_posts()

    assert not isinstance(exc_info.value, LoggedOutError)
    assert exc_info.value.log_outcome == "remote_timeout"


def test_timed_out_fetch_is_not_retried(http):
    http.routes["/asp/Announcements/ViewAnnouncements.asp"] = timing_out
    adapter_cls = partial(NetSchoolAdapter, http_factory=lambda: http)
    registry = SessionRegistry(
        session_factory=lambda school, creds: RemoteSession(
            school, creds, adapter_factory=lambda portal_type: adapter_cls
        )
    )
    orchestrator = ReloginOrchestrator(registry)

    with pytest.raises(RemoteError) as exc_info:
        orchestrator.fetch(
            "key", lambda: (SCHOOL, Credentials("ivanov", "Пароль1")), "get_posts"
        )

    assert exc_info.value.log_outcome == "remote_timeout"
    assert len(http.posted("/asp/Announcements/ViewAnnouncements.asp")) == 1
    # Only the initial login, no relogin
    assert len(http.posted("/login.asp")) == 1
    assert "key" in registry
