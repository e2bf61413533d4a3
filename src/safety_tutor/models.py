"""Data classes for user accounts and per-topic progress."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

TOTAL_DAYS = 60
PASS_THRESHOLD = 80


@dataclass
class TopicProgress:
    current_day: int = 1
    completed_days: set = field(default_factory=set)
    quiz_scores: dict = field(default_factory=dict)  # day -> percent

    def to_dict(self) -> dict:
        return {
            "current_day": self.current_day,
            "completed_days": sorted(self.completed_days),
            "quiz_scores": {str(day): score for day, score in sorted(self.quiz_scores.items())},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TopicProgress":
        return cls(
            current_day=int(data.get("current_day", 1)),
            completed_days={int(d) for d in data.get("completed_days", [])},
            quiz_scores={int(d): int(s) for d, s in (data.get("quiz_scores") or {}).items()},
        )


@dataclass
class UserAccount:
    uid: str
    name: str
    email: str
    job_title: str = ""
    company: str = ""
    photo_url: Optional[str] = None
    streak: int = 0
    last_activity_date: Optional[datetime] = None
    topics: dict = field(default_factory=dict)  # topic_id -> TopicProgress
    learned_terms: dict = field(default_factory=dict)  # topic_id -> list of terms
    review_terms: dict = field(default_factory=dict)

    def is_learned(self, topic_id: str, term: str) -> bool:
        return term in self.learned_terms.get(topic_id, [])

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "name": self.name,
            "email": self.email,
            "job_title": self.job_title,
            "company": self.company,
            "photo_url": self.photo_url,
            "streak": self.streak,
            "last_activity_date": self.last_activity_date.isoformat() if self.last_activity_date else None,
            "topics": {topic_id: p.to_dict() for topic_id, p in self.topics.items()},
            "learned_terms": {topic_id: list(terms) for topic_id, terms in self.learned_terms.items()},
            "review_terms": {topic_id: list(terms) for topic_id, terms in self.review_terms.items()},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserAccount":
        last = data.get("last_activity_date")
        return cls(
            uid=data["uid"],
            name=data.get("name", ""),
            email=data.get("email", ""),
            job_title=data.get("job_title") or "",
            company=data.get("company") or "",
            photo_url=data.get("photo_url"),
            streak=int(data.get("streak", 0)),
            last_activity_date=datetime.fromisoformat(last) if last else None,
            topics={
                topic_id: TopicProgress.from_dict(p)
                for topic_id, p in (data.get("topics") or {}).items()
            },
            learned_terms={k: list(v) for k, v in (data.get("learned_terms") or {}).items()},
            review_terms={k: list(v) for k, v in (data.get("review_terms") or {}).items()},
        )


@dataclass
class QuizOutcome:
    user: UserAccount
    passed: bool
