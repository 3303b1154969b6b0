# scraping/reports.py
import logging

from bs4 import BeautifulSoup

from utils.helpers import clean_string
from .models import (
    AverageMarkDynReport,
    AverageMarkReport,
    LessonsMap,
    ParentInfoLetterReport,
    StudentTotalReport,
    TotalMarkReport,
)

logger = logging.getLogger(__name__)


def _report_table(html: str):
    """Returns (headers, rows) of the report's printable table; rows are lists of cell texts."""
    soup = BeautifulSoup(html or "", "lxml")
    table = soup.find("table", class_="table-print")
    if table is None:
        tables = soup.find_all("table")
        if not tables:
            raise ValueError("Report table not found")
        # Fall back to the biggest table on the page
        table = max(tables, key=lambda t: len(t.find_all("tr")))
    rows = table.find_all("tr")
    if not rows:
        return [], []
    headers = [clean_string(c.get_text(" ", strip=True)) for c in rows[0].find_all(["th", "td"])]
    body = []
    for row in rows[1:]:
        cells = [clean_string(c.get_text(" ", strip=True)) for c in row.find_all("td")]
        if cells and cells[0]:
            body.append(cells)
    return headers, body


def _to_int(text: str):
    try:
        return int(text)
    except (TypeError, ValueError):
        return None


def _split_marks(text: str) -> list[str]:
    return [part for part in (text or "").replace(",", " ").split() if part]


def parse_lessons_map(html: str) -> LessonsMap:
    soup = BeautifulSoup(html or "", "lxml")
    select = soup.find("select", attrs={"name": "SCLID"})
    if select is None:
        raise ValueError("Subject selector not found")
    lessons = []
    for option in select.find_all("option"):
        value = (option.get("value") or "").strip()
        name = clean_string(option.get_text())
        if value and name:
            lessons.append({"name": name, "id": value})
    return LessonsMap(data=tuple(lessons))


def parse_total_mark_report(html: str) -> TotalMarkReport:
    """Subject -> period marks (``None`` where the period has no mark yet)."""
    _, rows = _report_table(html)
    return TotalMarkReport(data={row[0]: [_to_int(c) for c in row[1:]] for row in rows})


def parse_average_mark_report(html: str) -> AverageMarkReport:
    _, rows = _report_table(html)
    student, class_ = {}, {}
    for row in rows:
        if len(row) < 2:
            continue
        student[row[0]] = row[1]
        if len(row) > 2:
            class_[row[0]] = row[2]
    return AverageMarkReport(student=student, class_=class_)


def parse_average_mark_dyn_report(html: str) -> AverageMarkDynReport:
    _, rows = _report_table(html)
    data = []
    for row in rows:
        if len(row) < 2:
            continue
        data.append(
            {
                "date": row[0],
                "student": row[1],
                "class": row[2] if len(row) > 2 else "",
            }
        )
    return AverageMarkDynReport(data=tuple(data))


def parse_student_total_report(html: str) -> StudentTotalReport:
    """
    The header row is ``Предмет | <date> ... | Средняя``; every cell under a
    date holds zero or more marks separated by spaces.
    """
    headers, rows = _report_table(html)
    if len(headers) < 2:
        return StudentTotalReport()
    dates = headers[1:-1]
    main_table, averages = {}, {}
    for row in rows:
        subject = row[0]
        marks_cells = row[1 : 1 + len(dates)]
        main_table[subject] = {
            date: _split_marks(cell)
            for date, cell in zip(dates, marks_cells)
            if _split_marks(cell)
        }
        if len(row) == len(headers):
            averages[subject] = row[-1]
    return StudentTotalReport(main_table=main_table, averages=averages)


def parse_parent_info_letter(html: str) -> ParentInfoLetterReport:
    """Rows are ``Предмет | marks... | Средняя | Оценка за период``."""
    headers, rows = _report_table(html)
    data = []
    for row in rows:
        if len(row) < 3:
            continue
        marks = []
        for cell in row[1:-2]:
            marks.extend(_split_marks(cell))
        data.append(
            {"name": row[0], "marks": marks, "average": row[-2], "period": row[-1]}
        )
    return ParentInfoLetterReport(data=tuple(data))
