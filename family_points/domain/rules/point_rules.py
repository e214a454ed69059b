from family_points.config import POINTS_MAX, POINTS_MIN, POINTS_REQUIRED_MAX, POINTS_REQUIRED_MIN
from family_points.data.models import RULE_TYPE_PUNISHMENT, RULE_TYPE_REWARD, FamilyPolicy, Rule


def valid_rule_points(rule_type: str, points: int) -> bool:
    if points == 0 or not POINTS_MIN <= points <= POINTS_MAX:
        return False
    if rule_type == RULE_TYPE_REWARD:
        return points > 0
    if rule_type == RULE_TYPE_PUNISHMENT:
        return points < 0
    return False


def valid_points_required(points_required: int) -> bool:
    return POINTS_REQUIRED_MIN <= points_required <= POINTS_REQUIRED_MAX


def requires_verification(policy: FamilyPolicy, rule: Rule) -> bool:
    if rule.requires_approval:
        return True
    if rule.type == RULE_TYPE_PUNISHMENT:
        return bool(policy.require_punishment_verification)
    return bool(policy.require_reward_verification)
