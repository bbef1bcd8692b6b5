"""Verification & confirmation engine.

Decides when a guardian must confirm a link themselves and manages the
single-use, time-boxed codes used to do it. Only a SHA-256 digest of a code is
ever stored; the plaintext exists just long enough to hand to the notifier.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import Optional, Union

from backend.app.core.errors import ConfirmationExpired, ConfirmationInvalid
from backend.app.core.settings import get_settings
from backend.app.core.time import as_utc
from backend.app.models.enums import AppRole, PermissionTier, RelationshipType


def requires_confirmation(
    initiated_by_role: Union[AppRole, str],
    relationship_type: Union[RelationshipType, str],
    permission_tier: Union[PermissionTier, str],
) -> bool:
    if RelationshipType(relationship_type) is RelationshipType.INFORMATIONAL_CONTACT:
        return False
    if PermissionTier(permission_tier) is PermissionTier.FULL_ACCESS:
        return AppRole(initiated_by_role) is not AppRole.GUARDIAN
    return False


def generate_confirmation_code(length: Optional[int] = None) -> str:
    digits = length or get_settings().confirmation_code_length
    return "".join(secrets.choice("0123456789") for _ in range(digits))


def confirmation_expiration(sent_at: datetime) -> datetime:
    return sent_at + timedelta(hours=get_settings().confirmation_expiry_hours)


def hash_confirmation_code(code: str) -> str:
    return hashlib.sha256(code.strip().encode("utf-8")).hexdigest()


def is_confirmation_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    expires = as_utc(expires_at)
    return expires is not None and now > expires


def validate_confirmation_code(
    submitted_code: str,
    stored_code_hash: Optional[str],
    expires_at: Optional[datetime],
    now: datetime,
) -> None:
    """Raise ConfirmationExpired or ConfirmationInvalid; return None when the code is good."""
    if is_confirmation_expired(expires_at, now):
        raise ConfirmationExpired()
    if not stored_code_hash or not submitted_code:
        raise ConfirmationInvalid()
    submitted_hash = hash_confirmation_code(submitted_code)
    if not hmac.compare_digest(submitted_hash, stored_code_hash):
        raise ConfirmationInvalid()
