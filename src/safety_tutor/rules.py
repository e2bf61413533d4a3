"""Progress transition rules: passing, unlocking and streaks."""
import copy
from datetime import datetime

from safety_tutor.curriculum import is_valid_day
from safety_tutor.db import ArrayUnion
from safety_tutor.errors import TopicNotStarted, ValidationError
from safety_tutor.models import PASS_THRESHOLD, TOTAL_DAYS, UserAccount

LOCKED = "locked"
AVAILABLE = "available"
ATTEMPTED = "attempted"
COMPLETED = "completed"


def is_passing(score: int) -> bool:
    return score >= PASS_THRESHOLD


def validate_submission(user: UserAccount, topic_id: str, day_id, score) -> None:
    if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
        raise ValidationError(f"Score must be an integer between 0 and 100, got {score!r}")
    if not is_valid_day(day_id):
        raise ValidationError(f"Day must be between 1 and {TOTAL_DAYS}, got {day_id!r}")
    if topic_id not in user.topics:
        raise TopicNotStarted(topic_id)


def is_new_activity_day(last_activity: datetime | None, now: datetime) -> bool:
    return last_activity is None or last_activity.date() != now.date()


def apply_quiz_result(
    user: UserAccount,
    topic_id: str,
    day_id: int,
    score: int,
    now: datetime,
) -> tuple[UserAccount, bool, dict]:
    """Compute the state after a quiz submission.

    Returns the updated copy of the account, the pass verdict and the
    partial-field update that persists exactly that change. The input
    account is not modified.
    """
    validate_submission(user, topic_id, day_id, score)
    updated = copy.deepcopy(user)
    progress = updated.topics[topic_id]
    prefix = f"topics.{topic_id}"
    passed = is_passing(score)

    progress.quiz_scores[day_id] = score
    fields = {f"{prefix}.quiz_scores.{day_id}": score}

    if passed:
        if day_id not in progress.completed_days:
            progress.completed_days.add(day_id)
            fields[f"{prefix}.completed_days"] = ArrayUnion(day_id)
        # Only the frontier day moves the cursor
        if day_id == progress.current_day and progress.current_day < TOTAL_DAYS:
            progress.current_day += 1
            fields[f"{prefix}.current_day"] = progress.current_day

    if is_new_activity_day(updated.last_activity_date, now):
        updated.streak += 1
        updated.last_activity_date = now
        fields["streak"] = updated.streak
        fields["last_activity_date"] = now.isoformat()

    return updated, passed, fields


def day_status(user: UserAccount, topic_id: str, day_id: int) -> str:
    """Where a single day sits in locked -> available -> attempted -> completed."""
    progress = user.topics.get(topic_id)
    if progress is None or day_id > progress.current_day:
        return LOCKED
    if day_id in progress.completed_days:
        return COMPLETED
    if day_id in progress.quiz_scores:
        return ATTEMPTED
    return AVAILABLE
