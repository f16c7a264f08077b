"""Models for user profiles (credits) and API keys."""

from dataclasses import dataclass
from enum import Enum


class SubscriptionTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    TEAM = "team"


@dataclass
class Profile:
    """Per-identity profile holding the credits balance."""

    user_id: str
    credits: int = 0
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    display_name: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def __post_init__(self):
        if self.credits < 0:
            raise ValueError(f"credits must be non-negative, got {self.credits}")
        self.subscription_tier = SubscriptionTier(self.subscription_tier)


@dataclass
class ApiKey:
    """Stored API key record. Only the digest and a preview are kept."""

    id: str
    user_id: str
    name: str
    key_hash: str
    key_preview: str
    is_active: bool = True
    usage_count: int = 0
    last_used_at: str | None = None
    created_at: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses (never includes the digest)."""
        return {
            "id": self.id,
            "name": self.name,
            "key_preview": self.key_preview,
            "is_active": self.is_active,
            "usage_count": self.usage_count,
            "last_used_at": self.last_used_at,
            "created_at": self.created_at,
        }


@dataclass
class CreatedApiKey:
    """Result of key creation: the stored record plus the raw key, shown once."""

    record: ApiKey
    raw_key: str

    def to_dict(self) -> dict:
        return {**self.record.to_dict(), "key": self.raw_key}
