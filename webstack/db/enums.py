from enum import Enum


class AppRoleEnum(str, Enum):
    admin = "admin"
    super_admin = "super_admin"
    white_label_admin = "white_label_admin"
    moderator = "moderator"
    user = "user"


class WhiteLabelStatusEnum(str, Enum):
    trial = "trial"
    active = "active"
    expired = "expired"
    cancelled = "cancelled"
    white_label = "white_label"
    enterprise = "enterprise"


class SubscriptionTierEnum(str, Enum):
    free = "free"
    business_ceo = "business_ceo"
    white_label = "white_label"
    super_reseller = "super_reseller"


class UsageTierEnum(str, Enum):
    free = "free"
    basic = "basic"
    business_ceo = "business_ceo"
    white_label = "white_label"
    super_reseller = "super_reseller"
    admin = "admin"


class ChatSessionStatusEnum(str, Enum):
    active = "active"
    booking = "booking"
    transferred = "transferred"
    closed = "closed"


class ChatRoleEnum(str, Enum):
    user = "user"
    assistant = "assistant"
    system = "system"


class HandoffStatusEnum(str, Enum):
    pending = "pending"
    accepted = "accepted"
    resolved = "resolved"
