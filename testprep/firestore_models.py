"""
Firestore document models using Python dataclasses.

Each model mirrors one collection of the question bank:
  - questions    -> Question
  - tests        -> Test (with embedded TestQuestion entries)
  - test_series  -> TestSeries
  - users        -> User

Every model carries:
  - An `id` field for the Firestore document ID
  - A `to_dict()` instance method for serialization
  - A `from_dict(data, doc_id)` classmethod for deserialization

Datetime fields are kept as native datetime objects since Firestore
handles them natively.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


QUESTION_TYPES = ("mcq_single", "mcq_multiple", "numerical")
MCQ_TYPES = ("mcq_single", "mcq_multiple")
DIFFICULTY_LEVELS = ("easy", "medium", "hard")

ROLE_ADMIN = "admin"
ROLE_STUDENT = "student"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_datetime(value) -> Optional[datetime]:
    """Convert a value to datetime. Accepts datetime objects, ISO-format
    strings, and Firestore DatetimeWithNanoseconds objects."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        value = value.replace("Z", "+00:00")
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_float(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# ===========================================================================
# 1. Question
# ===========================================================================

@dataclass
class Question:
    id: Optional[str] = None
    type: str = "mcq_single"

    # Classification
    subject: str = ""
    chapter: Optional[str] = None
    topic: str = ""
    subtopic: Optional[str] = None
    custom_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    difficulty: str = "easy"

    # Content
    text: str = ""
    image_url: Optional[str] = None
    image_path: Optional[str] = None
    options: List[str] = field(default_factory=list)
    correct_options: List[int] = field(default_factory=list)
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None

    # Scoring
    marks: float = 4.0
    penalty: float = 0.0

    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_mcq(self) -> bool:
        return self.type in MCQ_TYPES

    @staticmethod
    def option_label(index: int) -> str:
        return chr(ord("A") + index)

    def correct_option_labels(self) -> List[str]:
        return [self.option_label(i) for i in self.correct_options]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.type,
            "subject": self.subject,
            "chapter": self.chapter,
            "topic": self.topic,
            "subtopic": self.subtopic,
            "custom_id": self.custom_id,
            "tags": list(self.tags),
            "difficulty": self.difficulty,
            "text": self.text,
            "image_url": self.image_url,
            "image_path": self.image_path,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "marks": self.marks,
            "penalty": self.penalty,
            "created_by": self.created_by,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }
        # Numerical questions carry no option fields at all
        if self.is_mcq:
            data["options"] = list(self.options)
            data["correct_options"] = list(self.correct_options)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Question:
        return cls(
            id=doc_id or data.get("id"),
            type=data.get("type", "mcq_single"),
            subject=data.get("subject", ""),
            chapter=data.get("chapter"),
            topic=data.get("topic", ""),
            subtopic=data.get("subtopic"),
            custom_id=data.get("custom_id"),
            tags=list(data.get("tags") or []),
            difficulty=data.get("difficulty", "easy"),
            text=data.get("text", ""),
            image_url=data.get("image_url"),
            image_path=data.get("image_path"),
            options=list(data.get("options") or []),
            correct_options=[int(i) for i in data.get("correct_options") or []],
            correct_answer=data.get("correct_answer"),
            explanation=data.get("explanation"),
            marks=_as_float(data.get("marks"), 4.0),
            penalty=_as_float(data.get("penalty"), 0.0),
            created_by=data.get("created_by"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# ===========================================================================
# 2. Test
# ===========================================================================

@dataclass
class TestQuestion:
    __test__ = False  # not a pytest test class

    question_id: str = ""
    marks: float = 0.0
    negative_marks: float = 0.0
    order: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_id": self.question_id,
            "marks": self.marks,
            "negative_marks": self.negative_marks,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TestQuestion:
        return cls(
            question_id=data.get("question_id", ""),
            marks=_as_float(data.get("marks")),
            negative_marks=_as_float(data.get("negative_marks")),
            order=int(data.get("order") or 0),
        )


@dataclass
class Test:
    __test__ = False

    id: Optional[str] = None
    title: str = ""
    description: str = ""
    duration_minutes: float = 60
    questions: List[TestQuestion] = field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def total_marks(self) -> float:
        return sum(q.marks for q in self.questions)

    def ordered_questions(self) -> List[TestQuestion]:
        return sorted(self.questions, key=lambda q: q.order)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "duration_minutes": self.duration_minutes,
            "questions": [q.to_dict() for q in self.questions],
            "created_by": self.created_by,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Test:
        return cls(
            id=doc_id or data.get("id"),
            title=data.get("title", ""),
            description=data.get("description", ""),
            duration_minutes=_as_float(data.get("duration_minutes"), 60),
            questions=[TestQuestion.from_dict(q) for q in data.get("questions") or []],
            created_by=data.get("created_by"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# ===========================================================================
# 3. TestSeries
# ===========================================================================

@dataclass
class TestSeries:
    __test__ = False

    id: Optional[str] = None
    title: str = ""
    description: str = ""
    price: float = 0.0
    thumbnail: Optional[str] = None
    test_ids: List[str] = field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "thumbnail": self.thumbnail,
            "test_ids": list(self.test_ids),
            "created_by": self.created_by,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> TestSeries:
        return cls(
            id=doc_id or data.get("id"),
            title=data.get("title", ""),
            description=data.get("description", ""),
            price=_as_float(data.get("price")),
            thumbnail=data.get("thumbnail"),
            test_ids=list(data.get("test_ids") or []),
            created_by=data.get("created_by"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# ===========================================================================
# 4. User
# ===========================================================================

@dataclass
class User:
    id: Optional[str] = None          # Firestore document ID == Firebase Auth UID
    email: str = ""
    display_name: str = ""
    role: str = ROLE_STUDENT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def initial(self) -> str:
        name = self.display_name or self.email
        return name[0].upper() if name else "?"

    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> User:
        return cls(
            id=doc_id or data.get("id"),
            email=data.get("email", ""),
            display_name=data.get("display_name", ""),
            role=data.get("role", ROLE_STUDENT),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )
