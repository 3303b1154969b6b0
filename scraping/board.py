# scraping/board.py
# Posts (announcements), mail and school resources.
import logging
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from utils.helpers import clean_string
from .models import (
    Attachment,
    MailDescription,
    MailEntry,
    Post,
    Resource,
    ResourceGroup,
)

logger = logging.getLogger(__name__)

MAIL_HEADER_FIELDS = {
    "от кого": "author",
    "от": "author",
    "кому": "to",
    "тема": "topic",
    "отправлено": "date",
    "дата": "date",
}


def _text(tag) -> str:
    return clean_string(tag.get_text(" ", strip=True)) if tag else ""


def _attachments(container, base_url: str) -> tuple:
    if container is None:
        return ()
    return tuple(
        Attachment(
            name=clean_string(link.get_text()) or link["href"].rsplit("/", 1)[-1],
            url=urljoin(base_url + "/", link["href"]),
        )
        for link in container.find_all("a", href=True)
    )


def parse_posts(html: str, base_url: str) -> list[Post]:
    soup = BeautifulSoup(html or "", "lxml")
    posts = []
    for block in soup.find_all("div", class_="advertisement"):
        message_tag = block.find(class_="text")
        posts.append(
            Post(
                author=_text(block.find(class_="author")),
                date=_text(block.find(class_="date")),
                title=_text(block.find(class_="title")),
                message=message_tag.get_text("\n", strip=True) if message_tag else "",
                attachments=_attachments(block.find(class_="attachments"), base_url),
            )
        )
    return posts


def parse_mail_list(payload: dict) -> dict:
    """Converts the portal's JSON mailbox page into ``{"records": [...], "total": n}``."""
    if not isinstance(payload, dict) or "Records" not in payload:
        raise ValueError("Unexpected mailbox payload")
    records = []
    for record in payload.get("Records") or []:
        records.append(
            MailEntry(
                id=str(record.get("MessageId", "")),
                author=clean_string(record.get("FromName", "")),
                topic=clean_string(record.get("Subj", "")),
                date=clean_string(record.get("Sent", "")),
                read=str(record.get("Read", "Y")).upper() == "Y",
            )
        )
    total = payload.get("TotalRecordCount", len(records))
    return {"records": records, "total": int(total)}


def parse_mail_description(html: str, message_id: str, base_url: str) -> MailDescription:
    soup = BeautifulSoup(html or "", "lxml")
    header = {"author": "", "to": "", "topic": "", "date": ""}
    header_table = soup.find("table", class_="message-header") or soup.find("table")
    if header_table:
        for row in header_table.find_all("tr"):
            cells = row.find_all(["th", "td"])
            if len(cells) < 2:
                continue
            label = _text(cells[0]).rstrip(":").lower()
            field = MAIL_HEADER_FIELDS.get(label)
            if field and not header[field]:
                header[field] = _text(cells[1])
    body_tag = soup.find(class_="message-body")
    if body_tag is None:
        raise ValueError("Message body not found")
    return MailDescription(
        id=str(message_id),
        body=body_tag.get_text("\n", strip=True),
        attachments=_attachments(soup.find(class_="attachments"), base_url),
        **header,
    )


def parse_resources(html: str, base_url: str) -> list[ResourceGroup]:
    soup = BeautifulSoup(html or "", "lxml")
    groups = []
    for block in soup.find_all("div", class_="resource-group"):
        title_tag = block.find(["h2", "h3", "h4"])
        resources = tuple(
            Resource(name=clean_string(link.get_text()), url=urljoin(base_url + "/", link["href"]))
            for link in block.find_all("a", href=True)
        )
        groups.append(ResourceGroup(title=_text(title_tag), resources=resources))
    return groups
