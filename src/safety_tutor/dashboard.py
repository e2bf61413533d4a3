"""Per-topic progress statistics and certificate eligibility."""
from safety_tutor.curriculum import TOPIC_CATEGORIES, is_checkpoint
from safety_tutor.models import TOTAL_DAYS, UserAccount


def get_progress_label(percent: float) -> str:
    if percent >= 100:
        return "CERTIFIED"
    elif percent >= 50:
        return "ADVANCED"
    elif percent > 0:
        return "IN PROGRESS"
    return "NOT STARTED"


def get_progress_color(percent: float) -> str:
    if percent >= 100:
        return "green"
    elif percent >= 50:
        return "yellow"
    elif percent > 0:
        return "dark_orange"
    return "red"


def get_topic_stats(user: UserAccount, topic_id: str) -> dict:
    progress = user.topics.get(topic_id)
    if progress is None:
        return {
            "topic_id": topic_id,
            "started": False,
            "current_day": 0,
            "completed": 0,
            "percent_complete": 0.0,
            "avg_score": 0.0,
            "checkpoints_passed": 0,
        }
    scores = list(progress.quiz_scores.values())
    completed = len(progress.completed_days)
    return {
        "topic_id": topic_id,
        "started": True,
        "current_day": progress.current_day,
        "completed": completed,
        "percent_complete": round(completed / TOTAL_DAYS * 100, 1),
        "avg_score": round(sum(scores) / len(scores), 1) if scores else 0.0,
        "checkpoints_passed": sum(1 for day in progress.completed_days if is_checkpoint(day)),
    }


def get_all_topic_stats(user: UserAccount) -> list[dict]:
    results = []
    for topic in TOPIC_CATEGORIES:
        stats = get_topic_stats(user, topic["id"])
        stats["name"] = topic["name"]
        stats["label"] = get_progress_label(stats["percent_complete"])
        results.append(stats)
    return results


def certificate_topics(user: UserAccount) -> list[str]:
    """Topics in which every one of the 60 days is completed."""
    full = set(range(1, TOTAL_DAYS + 1))
    return [topic_id for topic_id, p in user.topics.items() if full <= p.completed_days]


def is_certificate_eligible(user: UserAccount) -> bool:
    return bool(certificate_topics(user))
