"""Safety dictionary and flashcard decks.

Terms come from three places: the core list every learner starts with, the
vocabulary of lessons already in the lesson store, and extra terms generated
on request and saved per topic. Within a topic a term appears once, the
first source that has it wins.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError as SchemaError

from safety_tutor.curriculum import CORE_TERMS, CORE_TOPIC, TOPIC_CATEGORIES, get_topic
from safety_tutor.db import LESSONS, VOCABULARY, DocumentStore
from safety_tutor.errors import GenerationError, ValidationError
from safety_tutor.generator import TermGenerator
from safety_tutor.models import UserAccount
from safety_tutor.schemas import Lesson, VocabularyBatch

log = logging.getLogger(__name__)

GENERATE_BATCH = 20


@dataclass
class DictionaryTerm:
    term: str
    meaning: str
    topic_id: str
    example: str = ""
    pronunciation: str = ""
    translation: Optional[str] = None
    source: str = "core"  # core, lesson or generated

    def matches(self, query: str) -> bool:
        q = query.strip().casefold()
        return any(q in (text or "").casefold() for text in (self.term, self.meaning, self.translation))


class Dictionary:
    def __init__(self, store: DocumentStore, generator: TermGenerator | None = None):
        self.store = store
        self.generator = generator

    def terms(self, topic_id: str | None = None) -> list[DictionaryTerm]:
        """All terms for one topic, or for every catalog topic in catalog order."""
        if topic_id is None:
            topic_ids = [t["id"] for t in TOPIC_CATEGORIES]
        else:
            _check_topic(topic_id)
            topic_ids = [topic_id]
        results = []
        for tid in topic_ids:
            results.extend(self._topic_terms(tid))
        return results

    def search(self, query: str, topic_id: str | None = None) -> list[DictionaryTerm]:
        """Match query against term, meaning and translation, ignoring case. Blank matches everything."""
        return [t for t in self.terms(topic_id) if t.matches(query)]

    def topic_counts(self) -> dict:
        return {t["id"]: len(self._topic_terms(t["id"])) for t in TOPIC_CATEGORIES}

    def generate_more(self, topic_id: str, count: int = GENERATE_BATCH) -> list[DictionaryTerm]:
        """Ask the generator for new terms, save the ones not already known and return them."""
        _check_topic(topic_id)
        if self.generator is None:
            raise GenerationError("No term generator configured")
        existing = [t.term for t in self._topic_terms(topic_id)]
        raw = self.generator.generate_vocabulary(topic_id, count, existing)
        try:
            batch = VocabularyBatch.model_validate(raw)
        except SchemaError as e:
            raise GenerationError(f"Generated terms do not match schema: {e}") from e

        known = {term.casefold() for term in existing}
        new = []
        for entry in batch.terms:
            if entry.term.casefold() not in known:
                known.add(entry.term.casefold())
                new.append(entry)
        if new:
            saved = self.store.get(VOCABULARY, topic_id) or {"terms": []}
            saved["terms"].extend(entry.model_dump(mode="json") for entry in new)
            self.store.set(VOCABULARY, topic_id, saved)
        log.info("Saved %d new terms for %s (%d duplicates dropped)", len(new), topic_id, len(batch.terms) - len(new))
        return [DictionaryTerm(topic_id=topic_id, source="generated", **entry.model_dump()) for entry in new]

    def flashcard_deck(self, user: UserAccount, topic_id: str | None = None) -> list[DictionaryTerm]:
        """Terms the user has not learned yet, with terms marked for review first."""
        deck = [t for t in self.terms(topic_id) if not user.is_learned(t.topic_id, t.term)]
        return sorted(deck, key=lambda t: t.term not in user.review_terms.get(t.topic_id, []))

    def _topic_terms(self, topic_id: str) -> list[DictionaryTerm]:
        seen = set()
        terms = []

        def add(entry: DictionaryTerm):
            key = entry.term.casefold()
            if key not in seen:
                seen.add(key)
                terms.append(entry)

        if topic_id == CORE_TOPIC:
            for core in CORE_TERMS:
                add(DictionaryTerm(topic_id=topic_id, **core))

        lessons = []
        for key, data in self.store.scan(LESSONS, f"{topic_id}_day_"):
            try:
                lessons.append(Lesson.model_validate(data))
            except SchemaError:
                log.warning("Skipping invalid stored lesson %s", key)
        for lesson in sorted(lessons, key=lambda lesson: lesson.day_id):
            for v in lesson.vocabulary:
                add(DictionaryTerm(
                    term=v.term, meaning=v.meaning, topic_id=topic_id, example=v.example,
                    pronunciation=v.pronunciation, translation=v.translation, source="lesson",
                ))

        saved = self.store.get(VOCABULARY, topic_id) or {}
        for entry in saved.get("terms", []):
            add(DictionaryTerm(topic_id=topic_id, source="generated", **entry))
        return terms


def _check_topic(topic_id: str) -> None:
    if get_topic(topic_id) is None:
        raise ValidationError(f"Unknown topic: {topic_id}")
