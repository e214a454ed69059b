import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from family_points.data.models import BehaviorEvent, LedgerEntry
from family_points.data.repos import ledger_repo
from family_points.domain.errors import StorageFailureError
from family_points.domain.services import behavior_service, ledger_service
from family_points.domain.services.retry import run_with_retry


def no_sleep(_seconds):
    return None


def test_storage_failure_rolls_back_and_retry_applies_once(session, family, monkeypatch) -> None:
    real_add = ledger_repo.add_to_balance
    calls = {"n": 0}

    def flaky(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise OperationalError("UPDATE children", {}, Exception("database is locked"))
        return real_add(*args, **kwargs)

    monkeypatch.setattr(ledger_repo, "add_to_balance", flaky)

    behavior = run_with_retry(
        lambda: behavior_service.record_behavior(
            session, family.child.id, family.clean_room.id, None, family.parent.id, event_id="evt-retry"
        ),
        sleep=no_sleep,
    )

    assert calls["n"] == 2
    assert behavior.id == "evt-retry"
    assert ledger_service.get_balance(session, family.child.id) == 5
    assert len(session.scalars(select(LedgerEntry)).all()) == 1


def test_retry_after_unknown_outcome_reuses_committed_event(session, family) -> None:
    attempts = []

    def commit_then_time_out():
        behavior = behavior_service.record_behavior(
            session, family.child.id, family.clean_room.id, None, family.parent.id, event_id="evt-timeout"
        )
        attempts.append(behavior.id)
        if len(attempts) == 1:
            raise StorageFailureError()
        return behavior

    behavior = run_with_retry(commit_then_time_out, sleep=no_sleep)

    assert attempts == ["evt-timeout", "evt-timeout"]
    assert behavior.id == "evt-timeout"
    assert ledger_service.get_balance(session, family.child.id) == 5
    assert len(session.scalars(select(BehaviorEvent)).all()) == 1


def test_gives_up_after_configured_attempts(session, family, monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise OperationalError("UPDATE children", {}, Exception("disk I/O error"))

    monkeypatch.setattr(ledger_repo, "add_to_balance", broken)
    delays = []

    with pytest.raises(StorageFailureError):
        run_with_retry(
            lambda: behavior_service.record_behavior(
                session, family.child.id, family.clean_room.id, None, family.parent.id
            ),
            attempts=3,
            delay=0.5,
            sleep=delays.append,
        )

    assert delays == [0.5, 1.0]
    assert session.scalars(select(BehaviorEvent)).all() == []


def test_other_errors_are_not_retried() -> None:
    calls = []

    def fails():
        calls.append(1)
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        run_with_retry(fails, sleep=no_sleep)
    assert len(calls) == 1
