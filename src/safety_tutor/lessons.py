"""Lesson lookup with on-demand generation.

A lesson is read from the store when present. Otherwise it is generated,
validated and written back so later reads are free. Content problems never
reach the caller: after one retry the lesson degrades to a locally built
fallback.
"""
import logging
import time
from dataclasses import dataclass, field, replace

from pydantic import ValidationError as SchemaError

from safety_tutor.curriculum import (
    fallback_lesson, is_checkpoint, is_valid_day, lesson_title, question_count, review_range,
)
from safety_tutor.db import LESSONS, DocumentStore
from safety_tutor.errors import DuplicateQuestionsError, GenerationError, StorageUnavailable, ValidationError
from safety_tutor.generator import ContentGenerator, LessonRequest
from safety_tutor.models import TOTAL_DAYS
from safety_tutor.schemas import Lesson, LessonContent, lesson_key

log = logging.getLogger(__name__)

MAX_RETRIES = 1


@dataclass
class RegenerationReport:
    success: int = 0
    failed: int = 0
    errors: list = field(default_factory=list)


class LessonCache:
    def __init__(self, store: DocumentStore, generator: ContentGenerator, sleep=time.sleep):
        self.store = store
        self.generator = generator
        self.sleep = sleep

    def get_lesson(self, topic_id: str, day_id: int, force_regenerate: bool = False) -> Lesson:
        if not is_valid_day(day_id):
            raise ValidationError(f"Day must be between 1 and {TOTAL_DAYS}, got {day_id!r}")
        key = lesson_key(topic_id, day_id)

        if not force_regenerate:
            try:
                cached = self.store.get(LESSONS, key)
            except StorageUnavailable as e:
                log.warning("Lesson store unavailable for %s, using fallback: %s", key, e)
                return fallback_lesson(topic_id, day_id)
            if cached is not None:
                try:
                    return Lesson.model_validate(cached)
                except SchemaError as e:
                    log.warning("Stored lesson %s is invalid, regenerating: %s", key, e)

        lesson = self._generate(topic_id, day_id)
        if lesson is None:
            return fallback_lesson(topic_id, day_id)
        try:
            self.store.set(LESSONS, key, lesson.model_dump(mode="json"))
        except StorageUnavailable as e:
            log.error("Could not save lesson %s: %s", key, e)
        return lesson

    def _generate(self, topic_id: str, day_id: int) -> Lesson | None:
        """Generate and validate a lesson, retrying once. None when every attempt failed."""
        request = LessonRequest(
            topic_id=topic_id,
            day_id=day_id,
            is_checkpoint=is_checkpoint(day_id),
            question_count=question_count(day_id),
            title=lesson_title(day_id),
            review_range=review_range(day_id),
        )
        for attempt in range(MAX_RETRIES + 1):
            last_attempt = attempt == MAX_RETRIES
            try:
                content = self._validate(request, self.generator.generate(request))
                dupes = content.duplicate_prompts()
                if dupes and not last_attempt:
                    raise DuplicateQuestionsError(dupes)
                if dupes:
                    log.warning("Accepting %s day %d with repeated prompts %s", topic_id, day_id, dupes)
                return self._to_lesson(request, content)
            except DuplicateQuestionsError as e:
                log.info("Retrying %s day %d: %s", topic_id, day_id, e)
                request = replace(request, avoid_duplicates=True)
            except GenerationError as e:
                log.warning("Generation attempt %d for %s day %d failed: %s", attempt + 1, topic_id, day_id, e)
        log.error("Using fallback lesson for %s day %d", topic_id, day_id)
        return None

    @staticmethod
    def _validate(request: LessonRequest, raw) -> LessonContent:
        try:
            content = LessonContent.model_validate(raw)
        except SchemaError as e:
            raise GenerationError(f"Generated lesson does not match schema: {e}") from e
        if len(content.quiz) != request.question_count:
            raise GenerationError(
                f"Expected {request.question_count} questions, got {len(content.quiz)}"
            )
        return content

    @staticmethod
    def _to_lesson(request: LessonRequest, content: LessonContent) -> Lesson:
        data = content.model_dump()
        for position, question in enumerate(data["quiz"]):
            question["id"] = position
        return Lesson(
            topic_id=request.topic_id,
            day_id=request.day_id,
            title=request.title,
            is_checkpoint=request.is_checkpoint,
            **data,
        )

    def regenerate_topic(self, topic_id: str, days=range(1, TOTAL_DAYS + 1), delay: float = 2.0) -> RegenerationReport:
        """Force regeneration of every listed day, pausing between calls for rate limits."""
        report = RegenerationReport()
        days = list(days)
        for i, day_id in enumerate(days):
            lesson = self._generate(topic_id, day_id)
            if lesson is None:
                report.failed += 1
                report.errors.append(f"Day {day_id}: generation failed")
            else:
                try:
                    self.store.set(LESSONS, lesson_key(topic_id, day_id), lesson.model_dump(mode="json"))
                    report.success += 1
                except StorageUnavailable as e:
                    report.failed += 1
                    report.errors.append(f"Day {day_id}: {e}")
            if delay and i < len(days) - 1:
                self.sleep(delay)
        log.info("Regenerated %s: %d ok, %d failed", topic_id, report.success, report.failed)
        return report
