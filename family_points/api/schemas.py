"""
Request and response models.

Client payloads use several names for the same field (``notes`` for ``note``,
``image_url`` for ``avatar_url``, ``is_verified`` for ``approve``); they are
accepted here and only the canonical name reaches the services.
"""
from datetime import date, datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from family_points.config import NAME_MAX_LENGTH, NOTE_MAX_LENGTH


class RegisterRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    password: str = Field(min_length=6, max_length=128)


class LoginRequest(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    name: str

    class Config:
        from_attributes = True


class TokenOut(BaseModel):
    token: str
    user: UserOut
    family_id: Optional[int] = None
    role: Optional[str] = None


class FamilyCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)


class JoinFamilyRequest(BaseModel):
    invite_code: str = Field(min_length=1, max_length=20, validation_alias=AliasChoices("invite_code", "inviteCode"))


class FamilyOut(BaseModel):
    id: int
    name: str
    invite_code: str
    created_by: int
    created_at: datetime

    class Config:
        from_attributes = True


class FamilyMembershipOut(BaseModel):
    family: FamilyOut
    role: str


class MemberCreateRequest(BaseModel):
    email: str
    role: str = "member"


class MemberOut(BaseModel):
    family_id: int
    user_id: int
    role: str
    joined_at: datetime

    class Config:
        from_attributes = True


class PolicyUpdateRequest(BaseModel):
    require_reward_verification: Optional[bool] = None
    require_punishment_verification: Optional[bool] = None
    allow_self_approval: Optional[bool] = None
    immediate_redemption: Optional[bool] = None
    allow_negative_balance: Optional[bool] = None


class PolicyOut(BaseModel):
    family_id: int
    require_reward_verification: bool
    require_punishment_verification: bool
    allow_self_approval: bool
    immediate_redemption: bool
    allow_negative_balance: bool

    class Config:
        from_attributes = True


class ChildCreateRequest(BaseModel):
    family_id: Optional[int] = None
    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    birth_date: Optional[date] = None
    avatar_url: Optional[str] = Field(
        default=None, max_length=500, validation_alias=AliasChoices("avatar_url", "image_url", "url")
    )


class ChildOut(BaseModel):
    id: int
    family_id: int
    name: str
    birth_date: Optional[date]
    avatar_url: Optional[str]
    total_points: int

    class Config:
        from_attributes = True


class BehaviorCreateRequest(BaseModel):
    child_id: int
    rule_id: int
    note: Optional[str] = Field(
        default=None, max_length=NOTE_MAX_LENGTH, validation_alias=AliasChoices("note", "notes", "description")
    )
    event_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


class DecisionRequest(BaseModel):
    approve: bool = Field(validation_alias=AliasChoices("approve", "is_verified", "approved"))


class BehaviorOut(BaseModel):
    id: str
    family_id: int
    child_id: int
    rule_id: int
    points_change: int
    note: Optional[str]
    status: str
    recorded_by: int
    verified_by: Optional[int]
    verified_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class RedeemRequest(BaseModel):
    child_id: int
    event_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


class RedemptionOut(BaseModel):
    id: str
    family_id: int
    child_id: int
    reward_id: int
    points_spent: int
    status: str
    requested_by: int
    decided_by: Optional[int]
    decided_at: Optional[datetime]
    completed_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class LedgerEntryOut(BaseModel):
    event_id: str
    child_id: int
    delta: int
    balance_after: int
    source: str
    created_at: datetime

    class Config:
        from_attributes = True


class PointsStatsOut(BaseModel):
    total_points: int
    verified_points: int
    pending_points: int
    rejected_points: int
    this_month_points: int


class DiscrepancyOut(BaseModel):
    child_id: int
    stored: int
    calculated: int
    diff: int
