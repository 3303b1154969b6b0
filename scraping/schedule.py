# scraping/schedule.py
import re
import logging

from bs4 import BeautifulSoup

from utils.helpers import clean_string
from .models import DayTimeTable, Lesson

logger = logging.getLogger(__name__)

TIME_RANGE_RE = re.compile(r"(\d{1,2}:\d{2})\s*[-–]\s*(\d{1,2}:\d{2})")
CLASSROOM_RE = re.compile(r"\[([^\]]*)\]\s*$")
LESSON_PREFIXES = ("Урок:", "Урок", "Lesson:")


def _find_schedule_table(soup: BeautifulSoup):
    table = soup.find("table", class_="schedule-table")
    if table:
        return table
    # Older portal builds render the day view without the class
    container = soup.find("div", class_="schedule")
    if container:
        return container.find("table")
    return None


def _split_lesson_text(text: str) -> tuple[str, str]:
    """'Урок: Алгебра [каб. 203]' -> ('Алгебра', 'каб. 203')."""
    text = clean_string(text)
    for prefix in LESSON_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):].strip()
            break
    classroom = ""
    match = CLASSROOM_RE.search(text)
    if match:
        classroom = clean_string(match.group(1))
        text = text[: match.start()].strip()
    return text, classroom


def parse_day_timetable(html: str, date: str) -> DayTimeTable:
    """
    Parses the portal's day view into a DayTimeTable.

    Rows look like ``<td>08:30 - 09:15</td><td>Урок: Алгебра [каб. 203]</td>``.
    Rows without a recognisable time range (headers, holiday notes) are skipped.
    """
    soup = BeautifulSoup(html or "", "lxml")
    table = _find_schedule_table(soup)
    if not table:
        logger.info(f"No schedule table found for {date}; treating the day as empty.")
        return DayTimeTable(date=date, lessons=())

    lessons = []
    for row in table.find_all("tr"):
        cells = row.find_all("td")
        if len(cells) < 2:
            continue
        time_match = TIME_RANGE_RE.search(cells[0].get_text(" ", strip=True))
        if not time_match:
            continue
        name, classroom = _split_lesson_text(cells[1].get_text(" ", strip=True))
        if not name:
            continue
        lessons.append(
            Lesson(
                begin=time_match.group(1),
                end=time_match.group(2),
                name=name,
                classroom=classroom,
            )
        )
    return DayTimeTable(date=date, lessons=tuple(lessons))
