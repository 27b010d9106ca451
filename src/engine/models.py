"""
Session engine data model.

Sessions are persisted as flat documents in the session store. The dataclasses
here are the in-memory form; `to_document` / `from_document` convert to and
from the camelCase wire layout the store and the user record use.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime | None:
    """Accept a datetime or ISO string from a store document."""
    if value is None:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class Mode(str, Enum):
    """Named review discipline of a session."""

    PRACTICE = "practice"
    QUIZ = "quiz"
    MOCK = "mock"
    CUSTOM = "custom"
    WEAKNESS = "weakness"
    INCORRECT = "incorrect"
    REVIEW_DUE = "review_due"
    WARMUP = "warmup"
    DAILY_GRIND = "daily_grind"
    QUICK_FIRE = "quick_fire"


class ConfidenceRating(str, Enum):
    """Self-assessment forwarded to the scheduler after reviewing an item."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class ItemType(str, Enum):
    MCQ = "mcq"
    FLASHCARD = "flashcard"


# Document field names, in-memory attribute -> store key
_FIELD_KEYS = {
    "owner_id": "ownerId",
    "mode": "mode",
    "item_ids": "itemIds",
    "current_index": "currentIndex",
    "answers": "answers",
    "marked_for_review": "markedForReview",
    "rated": "rated",
    "is_finished": "isFinished",
    "created_at": "createdAt",
    "expires_at": "expiresAt",
}


@dataclass
class Session:
    """A study attempt binding one owner to an ordered list of items."""

    id: str
    owner_id: str
    mode: Mode
    item_ids: list[str]
    current_index: int = 0
    answers: dict[int, str | None] = field(default_factory=dict)
    marked_for_review: set[int] = field(default_factory=set)
    rated: set[int] = field(default_factory=set)
    is_finished: bool = False
    created_at: datetime | None = None
    expires_at: datetime | None = None
    updated_at: datetime | None = None

    def __len__(self) -> int:
        return len(self.item_ids)

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the session lifetime has passed."""
        if self.expires_at is None:
            return False
        return (now or utcnow()) > self.expires_at

    def is_answered(self, index: int) -> bool:
        return self.answers.get(index) is not None

    def to_document(self, *fields: str) -> dict[str, Any]:
        """
        Convert to a store document.

        With field names given, only those attributes are emitted, which is
        what partial merge-writes send.
        """
        names = fields or tuple(_FIELD_KEYS)
        doc: dict[str, Any] = {}
        for name in names:
            key = _FIELD_KEYS[name]
            value = getattr(self, name)
            if name == "mode":
                value = self.mode.value
            elif name == "answers":
                value = {str(i): answer for i, answer in sorted(self.answers.items())}
            elif name in ("marked_for_review", "rated"):
                value = sorted(value)
            elif name == "item_ids":
                value = list(value)
            doc[key] = value
        return doc

    @classmethod
    def from_document(cls, session_id: str, data: dict[str, Any]) -> "Session":
        """Create from a store document."""
        return cls(
            id=session_id,
            owner_id=data["ownerId"],
            mode=Mode(data["mode"]),
            item_ids=list(data.get("itemIds", [])),
            current_index=int(data.get("currentIndex", 0)),
            answers={int(k): v for k, v in (data.get("answers") or {}).items()},
            marked_for_review={int(i) for i in data.get("markedForReview", [])},
            rated={int(i) for i in data.get("rated", [])},
            is_finished=bool(data.get("isFinished", False)),
            created_at=parse_timestamp(data.get("createdAt")),
            expires_at=parse_timestamp(data.get("expiresAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass
class Item:
    """A content record (MCQ or flashcard) graded by the controller."""

    id: str
    question: str
    options: list[str] = field(default_factory=list)
    answer: str = ""
    correct_answer: str = ""
    explanation: str = ""
    type: ItemType = ItemType.MCQ
    topic_id: str | None = None
    chapter_id: str | None = None

    @property
    def correct_option(self) -> str:
        """
        Resolve the correct option text.

        `correct_answer` wins when present; a single letter A-D in `answer`
        indexes into `options`; otherwise the raw `answer` is used.
        """
        if self.correct_answer:
            return self.correct_answer
        letter = self.answer.strip()
        if len(letter) == 1 and "A" <= letter <= "D":
            position = ord(letter) - ord("A")
            if position < len(self.options):
                return self.options[position]
        return self.answer

    def is_correct(self, selected: str | None) -> bool:
        return selected is not None and selected == self.correct_option

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Item":
        """Parse an item from a content API payload."""
        return cls(
            id=str(data["id"]),
            question=data.get("question") or data.get("front", ""),
            options=list(data.get("options") or []),
            answer=data.get("answer") or data.get("back", ""),
            correct_answer=data.get("correctAnswer") or data.get("correct_answer") or "",
            explanation=data.get("explanation") or "",
            type=ItemType(data.get("type", ItemType.MCQ.value)),
            topic_id=data.get("topicId") or data.get("topic_id"),
            chapter_id=data.get("chapterId") or data.get("chapter_id"),
        )


@dataclass
class AttemptRecord:
    """One graded answer forwarded to the scheduling collaborator."""

    item_id: str
    selected_answer: str | None
    is_correct: bool
    session_id: str
    confidence_rating: ConfidenceRating | None = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_payload(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "selectedAnswer": self.selected_answer,
            "isCorrect": self.is_correct,
            "sessionId": self.session_id,
            "confidenceRating": self.confidence_rating.value if self.confidence_rating else None,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class ItemOutcome:
    item_id: str
    selected_answer: str | None
    correct_answer: str
    is_correct: bool


@dataclass
class SessionSummary:
    """Final result of a session, submitted once on finish."""

    session_id: str
    owner_id: str
    mode: Mode
    total_questions: int
    score: int
    attempts: list[ItemOutcome] = field(default_factory=list)
    duration_seconds: float | None = None
    topic_ids: list[str] = field(default_factory=list)
    chapter_ids: list[str] = field(default_factory=list)
    game_score: int | None = None
    xp_earned: int | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sessionId": self.session_id,
            "userId": self.owner_id,
            "mode": self.mode.value,
            "totalQuestions": self.total_questions,
            "score": self.score,
            "mcqAttempts": [
                {
                    "mcqId": outcome.item_id,
                    "selectedAnswer": outcome.selected_answer,
                    "correctAnswer": outcome.correct_answer,
                    "isCorrect": outcome.is_correct,
                }
                for outcome in self.attempts
            ],
            "topicIds": self.topic_ids,
            "chapterIds": self.chapter_ids,
        }
        if self.duration_seconds is not None:
            payload["durationSeconds"] = round(self.duration_seconds)
        if self.game_score is not None:
            payload["gameScore"] = self.game_score
        if self.xp_earned is not None:
            payload["xpEarned"] = self.xp_earned
        return payload
