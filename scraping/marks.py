# scraping/marks.py
import re
import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from utils.helpers import clean_string, extract_js_call_args
from .models import (
    Attachment,
    Child,
    ChildrenMap,
    DaySchoolMarks,
    LessonDescription,
    SchoolMark,
    WeekSchoolMarks,
)

logger = logging.getLogger(__name__)

DATE_RE = re.compile(r"(\d{2}\.\d{2}\.\d{2,4})")
WEIGHT_RE = re.compile(r"(\d+(?:[.,]\d+)?)")
TASK_JS_FUNCS = ("ShowAssignInfo", "showTask", "AssignmentPreview")


def parse_children_map(html: str, username: str = "") -> ChildrenMap:
    """
    Reads the student selector from the diary page.

    Parent accounts get a ``<select name="SID">`` with one option per child.
    Student accounts only carry a hidden ``SID`` input with their own id.
    """
    soup = BeautifulSoup(html or "", "lxml")
    select = soup.find("select", attrs={"name": "SID"})
    if select:
        children = []
        for option in select.find_all("option"):
            value = (option.get("value") or "").strip()
            name = clean_string(option.get_text())
            if value and name:
                children.append(Child(name=name, id=value))
        return ChildrenMap(children=tuple(children), is_parent=True)

    hidden = soup.find("input", attrs={"name": "SID"})
    if hidden and hidden.get("value"):
        name_tag = soup.find(class_="user-name")
        name = clean_string(name_tag.get_text()) if name_tag else username
        return ChildrenMap(
            children=(Child(name=name or username, id=hidden["value"].strip()),),
            is_parent=False,
        )
    raise ValueError("Student selector not found on the diary page")


def _task_ids(cell) -> tuple[int, int, int] | None:
    link = cell.find("a") if cell else None
    if not link:
        return None
    onclick = link.get("onclick") or link.get("href") or ""
    for func in TASK_JS_FUNCS:
        args = extract_js_call_args(onclick, func)
        if args and len(args) >= 3:
            try:
                return int(args[0]), int(args[1]), int(args[2])
            except ValueError:
                logger.warning(f"Non-numeric task ids in {onclick!r}")
                return None
    return None


def _parse_mark_row(row, current_lesson: str) -> SchoolMark | None:
    lesson_cell = row.find("td", class_="lesson")
    task_cell = row.find("td", class_="task")
    if not task_cell:
        return None
    ids = _task_ids(task_cell)
    if ids is None:
        return None
    aid, cid, tp = ids
    type_cell = row.find("td", class_="task-type")
    mark_cell = row.find("td", class_="mark")
    weight = ""
    if mark_cell:
        weight_src = mark_cell.get("data-weight") or mark_cell.get("title") or ""
        weight_match = WEIGHT_RE.search(weight_src)
        weight = weight_match.group(1) if weight_match else ""
    row_classes = row.get("class") or []
    return SchoolMark(
        aid=aid,
        cid=cid,
        tp=tp,
        status="done" in row_classes,
        in_time="overdue" not in row_classes,
        name=clean_string(lesson_cell.get_text()) if lesson_cell else current_lesson,
        title=clean_string(task_cell.get_text()),
        type=clean_string(type_cell.get_text()) if type_cell else "",
        mark=clean_string(mark_cell.get_text()) if mark_cell else "",
        weight=weight,
    )


def parse_week_marks(html: str) -> WeekSchoolMarks:
    """
    Parses the diary week page.

    A ``tr.date-row`` starts a day; following rows with a ``td.task`` link
    (``ShowAssignInfo(AID, CID, TP)``) are that day's tasks. Rows continuing the
    same lesson may omit the ``td.lesson`` cell.
    """
    soup = BeautifulSoup(html or "", "lxml")
    table = soup.find("table", class_="diary") or soup.find("table", id="diary")
    if not table:
        logger.info("Diary table not found; returning an empty week.")
        return WeekSchoolMarks(data=())

    days = []
    current_date = None
    current_lessons = []
    current_lesson_name = ""
    for row in table.find_all("tr"):
        row_classes = row.get("class") or []
        if "date-row" in row_classes:
            if current_date is not None:
                days.append(DaySchoolMarks(date=current_date, lessons=tuple(current_lessons)))
            date_match = DATE_RE.search(row.get_text(" ", strip=True))
            current_date = date_match.group(1) if date_match else clean_string(row.get_text())
            current_lessons = []
            current_lesson_name = ""
            continue
        if current_date is None:
            continue
        lesson_cell = row.find("td", class_="lesson")
        if lesson_cell and clean_string(lesson_cell.get_text()):
            current_lesson_name = clean_string(lesson_cell.get_text())
        mark = _parse_mark_row(row, current_lesson_name)
        if mark:
            current_lessons.append(mark)
    if current_date is not None:
        days.append(DaySchoolMarks(date=current_date, lessons=tuple(current_lessons)))
    return WeekSchoolMarks(data=tuple(days))


def parse_lesson_description(html: str, base_url: str) -> LessonDescription:
    soup = BeautifulSoup(html or "", "lxml")
    description_tag = soup.find(class_="description") or soup.find(id="description")
    if description_tag is None:
        raise ValueError("Task description block not found")
    author_tag = soup.find(class_="author")
    attachments = []
    attachments_block = soup.find(class_="attachments")
    if attachments_block:
        for link in attachments_block.find_all("a", href=True):
            attachments.append(
                Attachment(
                    name=clean_string(link.get_text()) or link["href"].rsplit("/", 1)[-1],
                    url=urljoin(base_url + "/", link["href"]),
                )
            )
    return LessonDescription(
        description=description_tag.get_text("\n", strip=True),
        author=clean_string(author_tag.get_text()) if author_tag else "",
        attachments=tuple(attachments),
    )
