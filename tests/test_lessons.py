# tests/test_lessons.py
from unittest.mock import patch

import pytest

from safety_tutor.errors import GenerationError, StorageUnavailable, ValidationError
from safety_tutor.lessons import LessonCache


def test_miss_generates_and_persists(cache, generator, store):
    lesson = cache.get_lesson("electrical", 3)
    assert len(generator.requests) == 1
    assert lesson.day_id == 3
    assert lesson.title == "Numbers & Quantities on Site"
    assert store.get("lessons", "electrical_day_3") == lesson.model_dump(mode="json")


def test_second_read_is_a_cache_hit(cache, generator):
    first = cache.get_lesson("electrical", 3)
    second = cache.get_lesson("electrical", 3)
    assert len(generator.requests) == 1
    assert second.model_dump_json() == first.model_dump_json()


def test_keys_are_per_topic_and_day(cache, generator):
    cache.get_lesson("electrical", 3)
    cache.get_lesson("chemicals", 3)
    cache.get_lesson("electrical", 4)
    assert len(generator.requests) == 3


def test_force_regenerate_overwrites(store, make_generator, content):
    first_reply = content(5)
    second_reply = content(5)
    second_reply["scenario"]["title"] = "Regenerated"
    generator = make_generator([first_reply, second_reply])
    cache = LessonCache(store, generator)

    cache.get_lesson("electrical", 2)
    lesson = cache.get_lesson("electrical", 2, force_regenerate=True)
    assert len(generator.requests) == 2
    assert lesson.scenario.title == "Regenerated"
    assert store.get("lessons", "electrical_day_2")["scenario"]["title"] == "Regenerated"


@pytest.mark.parametrize("day,count", [(1, 5), (4, 5), (5, 10), (30, 10), (60, 10), (59, 5)])
def test_quiz_length_follows_checkpoints(cache, day, count):
    lesson = cache.get_lesson("electrical", day)
    assert len(lesson.quiz) == count
    assert lesson.is_checkpoint == (day % 5 == 0)


def test_checkpoint_request_carries_review_range(cache, generator):
    cache.get_lesson("electrical", 10)
    request = generator.requests[0]
    assert request.is_checkpoint
    assert request.review_range == (6, 9)
    assert request.question_count == 10


def test_regular_request_has_no_review_range(cache, generator):
    cache.get_lesson("electrical", 7)
    request = generator.requests[0]
    assert request.review_range is None
    assert request.question_count == 5


@pytest.mark.parametrize("day", [0, 61, "3"])
def test_invalid_day_rejected(cache, day):
    with pytest.raises(ValidationError):
        cache.get_lesson("electrical", day)


def test_question_ids_assigned_by_position(store, make_generator, content):
    reply = content(5)
    for q in reply["quiz"]:
        q["id"] = 42
    cache = LessonCache(store, make_generator([reply]))
    lesson = cache.get_lesson("electrical", 1)
    assert [q.id for q in lesson.quiz] == [0, 1, 2, 3, 4]


def test_duplicate_prompts_retry_once_with_amended_request(store, make_generator, content):
    generator = make_generator([content(5, duplicate=True), content(5)])
    cache = LessonCache(store, generator)
    lesson = cache.get_lesson("electrical", 1)
    assert len(generator.requests) == 2
    assert not generator.requests[0].avoid_duplicates
    assert generator.requests[1].avoid_duplicates
    assert len({q.prompt for q in lesson.quiz}) == 5


def test_duplicates_after_retry_are_accepted(store, make_generator, content):
    generator = make_generator([content(5, duplicate=True), content(5, duplicate=True)])
    cache = LessonCache(store, generator)
    lesson = cache.get_lesson("electrical", 1)
    assert len(generator.requests) == 2
    assert [q.id for q in lesson.quiz] == [0, 1, 2, 3, 4]
    assert store.get("lessons", "electrical_day_1") is not None


def test_generation_error_retried_then_succeeds(store, make_generator):
    generator = make_generator([GenerationError("timeout")])
    cache = LessonCache(store, generator)
    lesson = cache.get_lesson("electrical", 1)
    assert len(generator.requests) == 2
    assert len(lesson.quiz) == 5


def test_fallback_after_retry_budget(store, make_generator):
    generator = make_generator([GenerationError("down"), GenerationError("still down")])
    cache = LessonCache(store, generator)
    lesson = cache.get_lesson("electrical", 2)
    assert len(generator.requests) == 2
    assert len(lesson.quiz) == 1
    assert lesson.vocabulary[0].term == "Safety"
    assert lesson.scenario.title == "Safety Colors & Signs Scenario"
    # Fallback content is not cached; the next read tries the generator again
    assert store.get("lessons", "electrical_day_2") is None


def test_schema_mismatch_falls_back(store, make_generator, content):
    bad = content(5)
    bad["scenario"]["risk_level"] = "Apocalyptic"
    wrong_count = content(3)
    generator = make_generator([bad, wrong_count])
    cache = LessonCache(store, generator)
    lesson = cache.get_lesson("electrical", 1)
    assert len(lesson.quiz) == 1
    assert store.get("lessons", "electrical_day_1") is None


def test_unknown_keys_rejected(store, make_generator, content):
    extra = content(5)
    extra["bonus"] = "surprise"
    generator = make_generator([extra, extra])
    lesson = LessonCache(store, generator).get_lesson("electrical", 1)
    assert len(lesson.quiz) == 1


def test_fallback_is_deterministic(store, make_generator):
    replies = [GenerationError("x")] * 4
    cache = LessonCache(store, make_generator(replies))
    assert cache.get_lesson("electrical", 10) == cache.get_lesson("electrical", 10)


def test_store_read_failure_returns_fallback(cache, store, generator):
    with patch.object(store, "get", side_effect=StorageUnavailable("offline")):
        lesson = cache.get_lesson("electrical", 4)
    assert len(lesson.quiz) == 1
    assert generator.requests == []


def test_store_write_failure_still_returns_lesson(cache, store):
    with patch.object(store, "set", side_effect=StorageUnavailable("read only")):
        lesson = cache.get_lesson("electrical", 4)
    assert len(lesson.quiz) == 5


def test_corrupt_cached_lesson_is_regenerated(cache, store, generator):
    store.set("lessons", "electrical_day_1", {"title": "broken"})
    lesson = cache.get_lesson("electrical", 1)
    assert len(generator.requests) == 1
    assert len(lesson.quiz) == 5


def test_regenerate_topic_reports_results(store, make_generator):
    sleeps = []
    generator = make_generator([GenerationError("a"), GenerationError("b")])
    cache = LessonCache(store, generator, sleep=sleeps.append)
    report = cache.regenerate_topic("electrical", days=[1, 2, 3], delay=2.0)
    assert report.success == 2
    assert report.failed == 1
    assert report.errors == ["Day 1: generation failed"]
    assert sleeps == [2.0, 2.0]
    assert store.get("lessons", "electrical_day_1") is None
    assert store.get("lessons", "electrical_day_3") is not None
