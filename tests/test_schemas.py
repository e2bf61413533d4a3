import pytest
from pydantic import ValidationError

from safety_tutor.schemas import Lesson, LessonContent, QuizQuestion, lesson_key


def test_quiz_question_needs_four_options():
    with pytest.raises(ValidationError):
        QuizQuestion(prompt="Q?", options=["a", "b", "c"], correct_option=0)


def test_quiz_question_answer_index_in_range():
    with pytest.raises(ValidationError):
        QuizQuestion(prompt="Q?", options=["a", "b", "c", "d"], correct_option=4)


def test_content_rejects_unknown_role(content):
    data = content(5)
    data["dialogue"][0]["role"] = "Pirate"
    with pytest.raises(ValidationError):
        LessonContent.model_validate(data)


def test_content_rejects_empty_vocabulary(content):
    data = content(5)
    data["vocabulary"] = []
    with pytest.raises(ValidationError):
        LessonContent.model_validate(data)


def test_translations_are_optional(content):
    data = content(5)
    data["vocabulary"][0]["translation"] = "Mũ bảo hộ"
    data["scenario"]["title_translation"] = "Thiếu PPE"
    parsed = LessonContent.model_validate(data)
    assert parsed.vocabulary[0].translation == "Mũ bảo hộ"
    assert parsed.dialogue[0].translation is None


def test_duplicate_prompts_detected(content):
    assert LessonContent.model_validate(content(5)).duplicate_prompts() == []
    assert LessonContent.model_validate(content(5, duplicate=True)).duplicate_prompts() == ["Same question?"]


def test_lesson_checkpoint_flag_must_match_day(content):
    data = {**content(10), "topic_id": "electrical", "day_id": 10, "title": "Review", "is_checkpoint": False}
    with pytest.raises(ValidationError):
        Lesson.model_validate(data)


def test_lesson_key(content):
    data = {**content(5), "topic_id": "electrical", "day_id": 3, "title": "T", "is_checkpoint": False}
    assert Lesson.model_validate(data).cache_key == "electrical_day_3" == lesson_key("electrical", 3)
