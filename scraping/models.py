# scraping/models.py
"""Value objects produced by the portal adapters.

All of them are immutable and serialise straight to JSON through ``to_dict``.
"""
from dataclasses import asdict, dataclass, field


class Serializable:
    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class School(Serializable):
    """Static descriptor of a school served by this instance."""

    id: int
    name: str
    website: str
    type: str
    permission: bool = True
    auth: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "School":
        return cls(
            id=int(data["id"]),
            name=data["name"],
            website=data["website"].rstrip("/"),
            type=str(data["type"]),
            permission=bool(data.get("permission", True)),
            auth=dict(data.get("auth") or {}),
        )

    def public_dict(self) -> dict:
        return {"name": self.name, "id": self.id, "website": self.website}


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='********')"


# --- Children ---


@dataclass(frozen=True)
class Child(Serializable):
    name: str
    id: str


@dataclass(frozen=True)
class ChildrenMap(Serializable):
    children: tuple = ()
    is_parent: bool = False

    def as_mapping(self) -> dict:
        return {child.name: child.id for child in self.children}


# --- Schedule ---


@dataclass(frozen=True)
class Lesson(Serializable):
    begin: str
    end: str
    name: str
    classroom: str


@dataclass(frozen=True)
class DayTimeTable(Serializable):
    date: str
    lessons: tuple = ()


@dataclass(frozen=True)
class TimeTable(Serializable):
    days: tuple = ()


# --- Tasks and marks ---


@dataclass(frozen=True)
class SchoolMark(Serializable):
    aid: int
    cid: int
    tp: int
    status: bool
    in_time: bool
    name: str
    title: str
    type: str
    mark: str
    weight: str


@dataclass(frozen=True)
class DaySchoolMarks(Serializable):
    date: str
    lessons: tuple = ()


@dataclass(frozen=True)
class WeekSchoolMarks(Serializable):
    data: tuple = ()


@dataclass(frozen=True)
class Attachment(Serializable):
    name: str
    url: str


@dataclass(frozen=True)
class LessonDescription(Serializable):
    description: str
    author: str = ""
    attachments: tuple = ()


# --- Reports ---


@dataclass(frozen=True)
class LessonsMap(Serializable):
    data: tuple = ()  # tuple of {"name": ..., "id": ...} dicts


@dataclass(frozen=True)
class TotalMarkReport(Serializable):
    data: dict = field(default_factory=dict)  # subject -> [period marks]


@dataclass(frozen=True)
class AverageMarkReport(Serializable):
    student: dict = field(default_factory=dict)  # subject -> average
    class_: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"student": dict(self.student), "class": dict(self.class_)}


@dataclass(frozen=True)
class AverageMarkDynReport(Serializable):
    data: tuple = ()  # ({"date": ..., "student": ..., "class": ...}, ...)


@dataclass(frozen=True)
class StudentTotalReport(Serializable):
    main_table: dict = field(default_factory=dict)  # subject -> {date: [marks]}
    averages: dict = field(default_factory=dict)  # subject -> average


@dataclass(frozen=True)
class ParentInfoLetterReport(Serializable):
    data: tuple = ()  # ({"name": ..., "marks": [...], "average": ..., "period": ...}, ...)


# --- Board: posts, mail, resources ---


@dataclass(frozen=True)
class Post(Serializable):
    author: str
    date: str
    title: str
    message: str
    attachments: tuple = ()


@dataclass(frozen=True)
class MailEntry(Serializable):
    id: str
    author: str
    topic: str
    date: str
    read: bool = True


@dataclass(frozen=True)
class MailDescription(Serializable):
    id: str
    author: str
    to: str
    topic: str
    date: str
    body: str
    attachments: tuple = ()


@dataclass(frozen=True)
class Resource(Serializable):
    name: str
    url: str


@dataclass(frozen=True)
class ResourceGroup(Serializable):
    title: str
    resources: tuple = ()
