"""Pydantic schemas for lesson content.

Generator output is untrusted structured text, so it is validated here
before it is cached or shown. Unknown keys are rejected.
"""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

RiskLevel = Literal["Low", "Medium", "High", "Critical"]
SpeakerRole = Literal["Engineer", "Safety Officer", "Worker", "Manager", "Examiner", "Trainee", "You"]


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class VocabEntry(_Strict):
    term: str = Field(..., min_length=1)
    meaning: str = Field(..., min_length=1)
    example: str
    pronunciation: str = ""
    translation: Optional[str] = None


class DialogueLine(_Strict):
    speaker: str = Field(..., min_length=1)
    role: SpeakerRole
    text: str = Field(..., min_length=1)
    translation: Optional[str] = None


class Scenario(_Strict):
    title: str = Field(..., min_length=1)
    description: str
    risk_level: RiskLevel
    title_translation: Optional[str] = None
    translation: Optional[str] = None


class QuizQuestion(_Strict):
    id: int = 0
    prompt: str = Field(..., min_length=1)
    options: list[str] = Field(..., min_length=4, max_length=4)
    correct_option: int = Field(..., ge=0, le=3)


class LessonContent(_Strict):
    """The part of a lesson produced by the content generator."""
    vocabulary: list[VocabEntry] = Field(..., min_length=1)
    dialogue: list[DialogueLine] = Field(..., min_length=1)
    scenario: Scenario
    quiz: list[QuizQuestion] = Field(..., min_length=1)

    def duplicate_prompts(self) -> list[str]:
        seen, dupes = set(), []
        for q in self.quiz:
            key = q.prompt.casefold()
            if key in seen and q.prompt not in dupes:
                dupes.append(q.prompt)
            seen.add(key)
        return dupes


class Lesson(LessonContent):
    topic_id: str
    day_id: int = Field(..., ge=1, le=60)
    title: str
    is_checkpoint: bool

    @field_validator("is_checkpoint")
    @classmethod
    def _matches_day(cls, value, info):
        day = info.data.get("day_id")
        if day is not None and value != (day % 5 == 0):
            raise ValueError(f"is_checkpoint={value} does not match day {day}")
        return value

    @property
    def cache_key(self) -> str:
        return lesson_key(self.topic_id, self.day_id)


def lesson_key(topic_id: str, day_id: int) -> str:
    return f"{topic_id}_day_{day_id}"


class VocabularyBatch(_Strict):
    """Extra dictionary terms produced by the generator for one topic."""
    terms: list[VocabEntry] = Field(..., min_length=1)
