"""
Integration tests for the database stores (in-memory SQLite).
"""
import pytest

from celpip_prep.models.user import User
from celpip_prep.schemas.attempt import Attempt, WritingEvaluation
from celpip_prep.schemas.practice_set import PracticeSet
from celpip_prep.utils import attempt_store, set_store
from celpip_prep.utils.auth import (
    authenticate,
    ensure_default_admin,
    is_hashed,
    register,
    rehash_plaintext_passwords,
)


class TestSetStore:
    def test_round_trip_keeps_tree(self, db_session, full_set):
        set_store.save_set(db_session, full_set)
        loaded = set_store.get_set(db_session, "set-full")

        assert [s.id for s in loaded.sections] == ["sec-r", "sec-w", "sec-l", "sec-s"]
        reading, _, listening, speaking = loaded.sections
        assert [q.id for q in reading.parts[0].questions] == ["q1", "q2", "p1", "c1"]
        assert reading.parts[0].questions[1].weight == 2
        assert [g.id for g in listening.parts[0].segments] == ["s1", "s2"]
        assert listening.parts[0].segments[1].questions[0].timer_seconds == 20
        assert listening.parts[0].segments[1].questions[0].segment_id == "s2"
        assert speaking.parts[0].segments[0].prep_time_seconds == 30

    def test_save_replaces_existing(self, db_session, full_set):
        set_store.save_set(db_session, full_set)
        edited = full_set.model_copy(update={"title": "Renamed", "sections": full_set.sections[:1]})
        set_store.save_set(db_session, edited)

        loaded = set_store.get_set(db_session, "set-full")
        assert loaded.title == "Renamed"
        assert [s.id for s in loaded.sections] == ["sec-r"]

    def test_published_filter(self, db_session, full_set):
        set_store.save_set(db_session, full_set)
        set_store.save_set(db_session, PracticeSet(id="draft", title="Draft"))
        assert {s.id for s in set_store.list_sets(db_session)} == {"set-full", "draft"}
        assert [s.id for s in set_store.list_sets(db_session, published_only=True)] == ["set-full"]

    def test_delete(self, db_session, full_set):
        set_store.save_set(db_session, full_set)
        assert set_store.delete_set(db_session, "set-full")
        assert set_store.get_set(db_session, "set-full") is None
        assert not set_store.delete_set(db_session, "set-full")


def attempt(aid="att-1", date="2026-01-02", **extra):
    data = dict(id=aid, user_id="user-1", set_id="set-full", set_title="Full Practice", date=date,
                section_scores={"sec-r": 2.0}, band_score=5)
    data.update(extra)
    return Attempt(**data)


class TestAttemptStore:
    def test_append_only(self, db_session):
        attempt_store.save_attempt(db_session, attempt())
        with pytest.raises(attempt_store.AttemptExists):
            attempt_store.save_attempt(db_session, attempt())

    def test_newest_first_with_feedback(self, db_session):
        attempt_store.save_attempt(db_session, attempt("a-old", "2026-01-01"))
        attempt_store.save_attempt(
            db_session,
            attempt("a-new", "2026-03-01", ai_feedback={"w1": WritingEvaluation(band_score=7, feedback="ok")}),
        )
        listed = attempt_store.list_attempts(db_session, "user-1")
        assert [a.id for a in listed] == ["a-new", "a-old"]
        assert listed[0].ai_feedback["w1"].band_score == 7
        assert listed[0].date == "2026-03-01"

    def test_same_day_listed_by_save_order(self, db_session):
        ids = [f"a-{n}" for n in range(5)]
        for aid in ids:
            attempt_store.save_attempt(db_session, attempt(aid, "2026-02-01"))
        listed = attempt_store.list_attempts(db_session, "user-1")
        assert [a.id for a in listed] == list(reversed(ids))

    def test_full_timestamp_orders_within_day(self, db_session):
        attempt_store.save_attempt(db_session, attempt("late", "2026-02-01T18:00:00+00:00"))
        attempt_store.save_attempt(db_session, attempt("early", "2026-02-01T09:00:00+00:00"))
        listed = attempt_store.list_attempts(db_session, "user-1")
        assert [a.id for a in listed] == ["late", "early"]
        assert listed[0].date == "2026-02-01"

    def test_title_from_snapshot_then_unknown(self, db_session):
        attempt_store.save_attempt(db_session, attempt("a1"))
        attempt_store.save_attempt(db_session, attempt("a2", set_title=""))
        titles = {a.id: a.set_title for a in attempt_store.list_attempts(db_session, "user-1")}
        assert titles == {"a1": "Full Practice", "a2": attempt_store.UNKNOWN_SET_TITLE}

    def test_other_users_hidden(self, db_session):
        attempt_store.save_attempt(db_session, attempt())
        assert attempt_store.list_attempts(db_session, "user-2") == []


class TestUsers:
    def test_register_and_authenticate(self, db_session):
        user = register(db_session, "Anna@Example.com", "secret", "Anna")
        assert user.role == "user"
        assert user.email == "anna@example.com"
        assert is_hashed(user.password_hash)
        assert authenticate(db_session, "anna@example.com", "secret").id == user.id
        assert authenticate(db_session, "anna@example.com", "wrong") is None

    def test_duplicate_email(self, db_session):
        register(db_session, "a@example.com", "x", "A")
        assert register(db_session, "A@example.com", "y", "B") is None

    def test_plaintext_rehash(self, db_session):
        db_session.add(User(id="legacy", email="old@example.com", password_hash="admin123", role="admin"))
        db_session.commit()
        assert rehash_plaintext_passwords(db_session) == 1
        assert authenticate(db_session, "old@example.com", "admin123") is not None
        assert rehash_plaintext_passwords(db_session) == 0

    def test_default_admin(self, db_session):
        assert ensure_default_admin(db_session, None, None) is None
        admin = ensure_default_admin(db_session, "admin@celprep.com", "admin123")
        assert admin.role == "admin"
        assert ensure_default_admin(db_session, "admin@celprep.com", "other").id == admin.id
