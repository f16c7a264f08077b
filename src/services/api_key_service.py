"""API key creation and authentication.

Keys look like ``sk_`` followed by 64 hex characters. Only a digest and a
short preview are stored; the raw key is returned once, at creation.
Digests are SHA-256 hex, or HMAC-SHA256 when a server-side pepper is set.
"""

import hashlib
import hmac
import logging
import secrets
import uuid

from models.account import ApiKey, CreatedApiKey
from services.project_store import ProjectStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "sk_"
KEY_RANDOM_BYTES = 32


def generate_raw_key() -> str:
    """Generate a new raw API key (``sk_`` + 64 lowercase hex chars)."""
    return KEY_PREFIX + secrets.token_hex(KEY_RANDOM_BYTES)


def key_preview(raw_key: str) -> str:
    """Truncated preview shown in key listings."""
    return f"{raw_key[:12]}...{raw_key[-4:]}"


def hash_api_key(raw_key: str, pepper: str = "") -> str:
    """Digest a raw key for storage and lookup."""
    if pepper:
        return hmac.new(pepper.encode(), raw_key.encode(), hashlib.sha256).hexdigest()
    return hashlib.sha256(raw_key.encode()).hexdigest()


def parse_bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class ApiKeyService:
    """Creates, lists, revokes and authenticates API keys."""

    def __init__(self, store: ProjectStore, pepper: str = ""):
        self.store = store
        self.pepper = pepper

    async def create_key(self, user_id: str, name: str) -> CreatedApiKey:
        """Create a key for a user. The raw key is only available on the result."""
        raw_key = generate_raw_key()
        record = ApiKey(
            id=uuid.uuid4().hex,
            user_id=user_id,
            name=name.strip() or "API key",
            key_hash=hash_api_key(raw_key, self.pepper),
            key_preview=key_preview(raw_key),
        )
        await self.store.insert_api_key(record)
        logger.info(f"Created API key {record.id} ({record.key_preview}) for {user_id}")
        return CreatedApiKey(record=record, raw_key=raw_key)

    async def authenticate(self, raw_key: str | None) -> ApiKey | None:
        """Resolve a presented key to its active record.

        Usage is recorded only for a successful match; unknown or inactive
        keys leave every counter untouched.

        Returns:
            The matching ApiKey, or None if missing, unknown or inactive
        """
        if not raw_key:
            return None

        record = await self.store.find_active_api_key(hash_api_key(raw_key, self.pepper))
        if record is None:
            logger.warning("Rejected API key: no active key matches the digest")
            return None

        await self.store.record_api_key_usage(record.id)
        record.usage_count += 1
        logger.info(f"Authenticated API key {record.id} for {record.user_id}")
        return record

    async def list_keys(self, user_id: str) -> list[ApiKey]:
        return await self.store.list_api_keys(user_id)

    async def revoke_key(self, key_id: str, user_id: str) -> bool:
        """Deactivate a key; it stays listed but no longer authenticates."""
        revoked = await self.store.deactivate_api_key(key_id, user_id)
        if revoked:
            logger.info(f"Revoked API key {key_id}")
        return revoked
