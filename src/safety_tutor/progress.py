"""User accounts and per-topic progression, persisted in the document store."""
import copy
import logging
from datetime import datetime

from safety_tutor.auth import Identity
from safety_tutor.curriculum import get_topic
from safety_tutor.db import USERS, ArrayRemove, ArrayUnion, DocumentStore
from safety_tutor.errors import StorageUnavailable, ValidationError, WriteConflict
from safety_tutor.models import QuizOutcome, TopicProgress, UserAccount
from safety_tutor.rules import apply_quiz_result, validate_submission

log = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3
PROFILE_FIELDS = ("name", "job_title", "company", "photo_url")


class ProgressStore:
    """The only writer of user records and the only place the unlock cursor moves."""

    def __init__(self, store: DocumentStore, clock=datetime.now):
        self.store = store
        self.clock = clock

    def refresh_user(self, uid: str) -> UserAccount | None:
        data = self.store.get(USERS, uid)
        return UserAccount.from_dict(data) if data else None

    def sign_in(self, identity: Identity) -> UserAccount:
        """Load the account for an authenticated identity, creating it on first sign-in."""
        existing = self.refresh_user(identity.uid)
        if existing is None:
            user = UserAccount(
                uid=identity.uid,
                name=identity.display_name or identity.email.split("@")[0] or "User",
                email=identity.email,
                photo_url=identity.photo_url,
            )
            self.store.set(USERS, user.uid, user.to_dict())
            log.info("Created account for %s", user.uid)
            return user

        fields = {}
        if identity.display_name and identity.display_name != existing.name:
            fields["name"] = existing.name = identity.display_name
        if identity.email and identity.email != existing.email:
            fields["email"] = existing.email = identity.email
        if identity.photo_url and identity.photo_url != existing.photo_url:
            fields["photo_url"] = existing.photo_url = identity.photo_url
        if fields:
            self.store.update(USERS, existing.uid, fields)
        return existing

    def handle_auth_change(self, identity: Identity | None) -> UserAccount | None:
        if identity is None:
            return None
        return self.sign_in(identity)

    def save_profile(self, user: UserAccount, **changes) -> UserAccount:
        unknown = set(changes) - set(PROFILE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit profile fields: {', '.join(sorted(unknown))}")
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("Name cannot be empty")
        if changes:
            self.store.update(USERS, user.uid, changes)
        updated = UserAccount.from_dict({**user.to_dict(), **changes})
        return updated

    def initialize_topic(self, user: UserAccount, topic_id: str) -> TopicProgress:
        """Start a topic for the user. Returns existing progress untouched if already started."""
        if get_topic(topic_id) is None:
            raise ValidationError(f"Unknown topic: {topic_id}")
        if topic_id in user.topics:
            return user.topics[topic_id]
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            snapshot = self.store.get_snapshot(USERS, user.uid)
            if snapshot is None:
                raise StorageUnavailable(f"No stored account for {user.uid}")
            stored = (snapshot.data.get("topics") or {}).get(topic_id)
            if stored is not None:
                # Started from another session
                progress = TopicProgress.from_dict(stored)
                break
            progress = TopicProgress()
            try:
                self.store.update(
                    USERS, user.uid, {f"topics.{topic_id}": progress.to_dict()},
                    expected_version=snapshot.version,
                )
            except WriteConflict:
                log.warning("Concurrent update on %s (attempt %d/%d)", user.uid, attempt, MAX_WRITE_ATTEMPTS)
                continue
            log.info("User %s started topic %s", user.uid, topic_id)
            break
        else:
            raise StorageUnavailable(f"Could not start {topic_id} for {user.uid} after {MAX_WRITE_ATTEMPTS} attempts")
        user.topics[topic_id] = progress
        return progress

    def mark_term(self, user: UserAccount, topic_id: str, term: str, learned: bool) -> UserAccount:
        """Flag a dictionary term as learned or as needing review. The two marks exclude each other."""
        if get_topic(topic_id) is None:
            raise ValidationError(f"Unknown topic: {topic_id}")
        if not term.strip():
            raise ValidationError("Term cannot be empty")
        add, drop = ("learned_terms", "review_terms") if learned else ("review_terms", "learned_terms")
        self.store.update(USERS, user.uid, {
            f"{add}.{topic_id}": ArrayUnion(term),
            f"{drop}.{topic_id}": ArrayRemove(term),
        })
        updated = copy.deepcopy(user)
        added = getattr(updated, add).setdefault(topic_id, [])
        if term not in added:
            added.append(term)
        dropped = getattr(updated, drop).get(topic_id)
        if dropped and term in dropped:
            dropped.remove(term)
        log.info("User %s marked %r in %s as %s", user.uid, term, topic_id, "learned" if learned else "review")
        return updated

    def submit_quiz_result(self, user: UserAccount, topic_id: str, day_id: int, score: int) -> QuizOutcome:
        """Record a quiz score and apply pass, unlock and streak rules in one write.

        The transition is applied to the stored record and written with a
        version check, so a submission from another session is never
        overwritten with stale progress.
        """
        validate_submission(user, topic_id, day_id, score)
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            snapshot = self.store.get_snapshot(USERS, user.uid)
            if snapshot is None:
                raise StorageUnavailable(f"No stored account for {user.uid}")
            current = UserAccount.from_dict(snapshot.data)
            updated, passed, fields = apply_quiz_result(current, topic_id, day_id, score, self.clock())
            try:
                self.store.update(USERS, user.uid, fields, expected_version=snapshot.version)
            except WriteConflict:
                log.warning("Concurrent update on %s (attempt %d/%d)", user.uid, attempt, MAX_WRITE_ATTEMPTS)
                continue
            log.info(
                "User %s %s %s day %d with %d%%",
                user.uid, "passed" if passed else "failed", topic_id, day_id, score,
            )
            return QuizOutcome(user=updated, passed=passed)
        raise StorageUnavailable(f"Could not save quiz result for {user.uid} after {MAX_WRITE_ATTEMPTS} attempts")
