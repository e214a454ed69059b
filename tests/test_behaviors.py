import pytest
from sqlalchemy import select

from family_points.data.models import (
    BEHAVIOR_PENDING,
    BEHAVIOR_VERIFIED,
    RULE_TYPE_REWARD,
    BehaviorEvent,
    LedgerEntry,
    Rule,
)
from family_points.domain.errors import (
    ChildNotFoundError,
    ChildNotInFamilyError,
    InsufficientBalanceError,
    InvalidStateError,
    RuleInactiveError,
    RuleNotFoundError,
    UnauthorizedError,
)
from family_points.domain.services import behavior_service, family_service, ledger_service


def test_record_without_verification_applies_points(session, family) -> None:
    behavior = behavior_service.record_behavior(
        session, family.child.id, family.clean_room.id, "spotless", family.parent.id
    )

    assert behavior.status == BEHAVIOR_VERIFIED
    assert behavior.points_change == 5
    assert behavior.verified_at is not None
    assert ledger_service.get_balance(session, family.child.id) == 5


def test_record_requiring_verification_stays_pending(session, family) -> None:
    family_service.update_policy(session, family.family.id, family.parent.id, require_reward_verification=True)

    behavior = behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.parent.id)

    assert behavior.status == BEHAVIOR_PENDING
    assert ledger_service.get_balance(session, family.child.id) == 0
    assert not ledger_service.is_applied(session, behavior.id)


def test_rule_level_approval_flag(session, family) -> None:
    rule = family_service.add_rule(
        session, family.family.id, family.parent.id, "Cooked dinner", RULE_TYPE_REWARD, 15, requires_approval=True
    )
    behavior = behavior_service.record_behavior(session, family.child.id, rule.id, None, family.guardian.id)
    assert behavior.status == BEHAVIOR_PENDING


def test_points_are_snapshotted(session, family) -> None:
    behavior = behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.parent.id)

    rule = session.get(Rule, family.clean_room.id)
    rule.points = 50
    session.commit()

    assert session.get(BehaviorEvent, behavior.id).points_change == 5
    later = behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.parent.id)
    assert later.points_change == 50


def test_punishment_can_go_negative_by_default(session, family) -> None:
    behavior_service.record_behavior(session, family.child.id, family.rude.id, None, family.parent.id)
    assert ledger_service.get_balance(session, family.child.id) == -3


def test_punishment_blocked_when_negative_balance_disallowed(session, family) -> None:
    family_service.update_policy(session, family.family.id, family.parent.id, allow_negative_balance=False)

    with pytest.raises(InsufficientBalanceError):
        behavior_service.record_behavior(session, family.child.id, family.rude.id, None, family.parent.id)

    assert ledger_service.get_balance(session, family.child.id) == 0
    assert session.scalars(select(BehaviorEvent)).all() == []


def test_reusing_event_id_returns_existing_event(session, family) -> None:
    first = behavior_service.record_behavior(
        session, family.child.id, family.clean_room.id, None, family.parent.id, event_id="retry-1"
    )
    second = behavior_service.record_behavior(
        session, family.child.id, family.clean_room.id, None, family.parent.id, event_id="retry-1"
    )

    assert second.id == first.id
    assert ledger_service.get_balance(session, family.child.id) == 5
    assert len(session.scalars(select(LedgerEntry)).all()) == 1


def test_reusing_event_id_for_other_rule_is_rejected(session, family) -> None:
    behavior_service.record_behavior(
        session, family.child.id, family.clean_room.id, None, family.parent.id, event_id="retry-1"
    )
    with pytest.raises(InvalidStateError):
        behavior_service.record_behavior(
            session, family.child.id, family.rude.id, None, family.parent.id, event_id="retry-1"
        )


def test_record_errors(session, family) -> None:
    with pytest.raises(ChildNotFoundError):
        behavior_service.record_behavior(session, 999, family.clean_room.id, None, family.parent.id)
    with pytest.raises(RuleNotFoundError):
        behavior_service.record_behavior(session, family.child.id, 999, None, family.parent.id)
    with pytest.raises(UnauthorizedError):
        behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.member.id)
    with pytest.raises(UnauthorizedError):
        behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.outsider.id)

    rule = session.get(Rule, family.rude.id)
    rule.is_active = False
    session.commit()
    with pytest.raises(RuleInactiveError):
        behavior_service.record_behavior(session, family.child.id, family.rude.id, None, family.parent.id)

    assert ledger_service.get_balance(session, family.child.id) == 0


def test_child_from_another_family(session, family) -> None:
    other = family_service.create_family(session, "Neighbours", family.outsider.id)
    rule = family_service.add_rule(session, other.id, family.outsider.id, "Tidy", RULE_TYPE_REWARD, 2)

    with pytest.raises(ChildNotInFamilyError):
        behavior_service.record_behavior(session, family.child.id, rule.id, None, family.outsider.id)


def test_listing_and_stats(session, family) -> None:
    family_service.update_policy(session, family.family.id, family.parent.id, require_punishment_verification=True)
    behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.parent.id)
    behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.parent.id)
    behavior_service.record_behavior(session, family.child.id, family.rude.id, None, family.parent.id)

    events, total = behavior_service.list_behaviors(session, family.family.id, limit=2)
    assert total == 3
    assert len(events) == 2

    pending, total = behavior_service.list_behaviors(session, family.family.id, status=BEHAVIOR_PENDING)
    assert total == 1
    assert pending[0].rule_id == family.rude.id

    stats = behavior_service.points_stats(session, family.child.id)
    assert stats == {
        "verified_points": 10,
        "pending_points": -3,
        "rejected_points": 0,
        "this_month_points": 10,
        "total_points": 10,
    }


def test_reused_event_id_still_checks_membership(session, family) -> None:
    behavior_service.record_behavior(
        session, family.child.id, family.clean_room.id, "private", family.parent.id, event_id="shared-1"
    )

    with pytest.raises(UnauthorizedError):
        behavior_service.record_behavior(
            session, family.child.id, family.clean_room.id, None, family.outsider.id, event_id="shared-1"
        )
    with pytest.raises(UnauthorizedError):
        behavior_service.record_behavior(
            session, family.child.id, family.clean_room.id, None, family.member.id, event_id="shared-1"
        )
    assert ledger_service.get_balance(session, family.child.id) == 5
