import pytest

from family_points.domain.errors import InsufficientPointsError
from family_points.domain.services import behavior_service, events, redemption_service


def test_listener_sees_committed_changes(session, family, bus) -> None:
    received = []
    with bus.subscribe(received.append):
        behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.parent.id)

    assert len(received) == 1
    change = received[0]
    assert change.child_id == family.child.id
    assert change.delta == 5
    assert change.balance == 5
    assert change.to_dict()["source"] == "behavior"


def test_rolled_back_change_is_not_announced(session, family, bus) -> None:
    received = []
    subscription = bus.subscribe(received.append)

    with pytest.raises(InsufficientPointsError):
        redemption_service.redeem(session, family.child.id, family.ice_cream.id, family.parent.id)

    assert received == []
    assert session.info.get(events.PENDING_KEY) is None
    subscription.close()


def test_closed_subscription_stops_receiving(session, family, bus) -> None:
    received = []
    subscription = bus.subscribe(received.append)
    assert bus.subscriber_count == 1
    subscription.close()
    subscription.close()
    assert bus.subscriber_count == 0

    behavior_service.record_behavior(session, family.child.id, family.clean_room.id, None, family.parent.id)
    assert received == []


def test_failing_listener_does_not_break_others(session, family, bus) -> None:
    def broken(change):
        raise RuntimeError("boom")

    received = []
    bus.subscribe(broken)
    bus.subscribe(received.append)

    behavior = behavior_service.record_behavior(
        session, family.child.id, family.clean_room.id, None, family.parent.id
    )

    assert behavior.status == "verified"
    assert len(received) == 1
