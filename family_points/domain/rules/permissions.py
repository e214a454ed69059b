from family_points.data.models import ROLE_GUARDIAN, ROLE_MEMBER, ROLE_PARENT

ACTION_RECORD = "record"
ACTION_APPROVE = "approve"
ACTION_REDEEM = "redeem"
ACTION_MANAGE = "manage"

ACTIONS = (ACTION_RECORD, ACTION_APPROVE, ACTION_REDEEM, ACTION_MANAGE)

ROLE_PERMISSIONS = {
    ROLE_PARENT: frozenset(ACTIONS),
    ROLE_GUARDIAN: frozenset({ACTION_RECORD, ACTION_APPROVE, ACTION_REDEEM}),
    ROLE_MEMBER: frozenset({ACTION_REDEEM}),
}


def authorize(role: str | None, action: str) -> bool:
    if role is None:
        return False
    return action in ROLE_PERMISSIONS.get(role, frozenset())
