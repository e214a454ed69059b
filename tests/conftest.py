import os
import tempfile
from types import SimpleNamespace

import pytest

# Keep the module-level engine away from the source tree during tests.
os.environ.setdefault("FAMILY_POINTS_DATA_DIR", tempfile.mkdtemp(prefix="family-points-tests-"))
os.environ.setdefault("FAMILY_POINTS_PASSWORD_ITERATIONS", "1000")

from family_points.data.models import RULE_TYPE_PUNISHMENT, RULE_TYPE_REWARD, ROLE_GUARDIAN, ROLE_MEMBER, Base  # noqa: E402
from family_points.data.session import build_engine, build_sessionmaker  # noqa: E402
from family_points.domain.services import events, family_service  # noqa: E402

PASSWORD = "secret123"


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.sqlite3'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
def bus():
    bus = events.LedgerEventBus()
    yield bus
    bus.close()


@pytest.fixture
def session(session_factory, bus):
    session = session_factory()
    events.attach_bus(session, bus)
    yield session
    session.close()


@pytest.fixture
def family(session):
    """A family with a parent, a guardian, a plain member, one child, two rules and a reward."""
    parent = family_service.register_user(session, "parent@example.com", "Parent", PASSWORD)
    guardian = family_service.register_user(session, "guardian@example.com", "Guardian", PASSWORD)
    member = family_service.register_user(session, "member@example.com", "Member", PASSWORD)
    outsider = family_service.register_user(session, "outsider@example.com", "Outsider", PASSWORD)

    home = family_service.create_family(session, "Home", parent.id)
    family_service.add_member(session, home.id, parent.id, guardian.email, ROLE_GUARDIAN)
    family_service.add_member(session, home.id, parent.id, member.email, ROLE_MEMBER)

    child = family_service.add_child(session, home.id, parent.id, "Ava")
    clean_room = family_service.add_rule(session, home.id, parent.id, "Clean room", RULE_TYPE_REWARD, 5)
    rude = family_service.add_rule(session, home.id, parent.id, "Rude", RULE_TYPE_PUNISHMENT, -3)
    ice_cream = family_service.add_reward(session, home.id, parent.id, "Ice cream", 5)

    return SimpleNamespace(
        family=home,
        parent=parent,
        guardian=guardian,
        member=member,
        outsider=outsider,
        child=child,
        clean_room=clean_room,
        rude=rude,
        ice_cream=ice_cream,
    )
