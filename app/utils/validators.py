"""
Explicit validation of the invariants the marketplace core relies on.

Each validator returns a list of Violation; callers collect them and hand
the result to raise_for_violations before touching the database.
"""
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, List, Optional

from app.utils.exceptions import ValidationError, Violation

MIN_CART_QUANTITY = 1
MAX_CART_QUANTITY = 1000

SLUG_REGEX = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
SLUG_MIN_LENGTH = 3
SLUG_MAX_LENGTH = 64


def validate_quantity(quantity: Any, field: str = "quantity") -> List[Violation]:
    # bool is an int subclass; True is not a quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return [Violation(field, "must be an integer")]
    if not MIN_CART_QUANTITY <= quantity <= MAX_CART_QUANTITY:
        return [Violation(field, f"must be between {MIN_CART_QUANTITY} and {MAX_CART_QUANTITY}")]
    return []


def validate_shipping_address(address: Any, field: str = "shipping_address") -> List[Violation]:
    if not isinstance(address, Mapping):
        return [Violation(field, "must be an object")]
    if not address:
        return [Violation(field, "must not be empty")]
    return []


def validate_slug(slug: Any, field: str = "slug") -> List[Violation]:
    if not isinstance(slug, str):
        return [Violation(field, "must be a string")]
    if not SLUG_MIN_LENGTH <= len(slug) <= SLUG_MAX_LENGTH:
        return [Violation(field, f"must be {SLUG_MIN_LENGTH}-{SLUG_MAX_LENGTH} characters")]
    if not SLUG_REGEX.match(slug):
        return [Violation(field, "must be lowercase letters, digits and single hyphens")]
    return []


def validate_expiry(
    expires_at: Optional[datetime],
    now: Optional[datetime] = None,
    field: str = "expires_at",
) -> List[Violation]:
    if expires_at is None:
        return []
    now = now or datetime.now(timezone.utc)
    if as_utc(expires_at) <= as_utc(now):
        return [Violation(field, "must be in the future")]
    return []


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC (SQLite hands them back naive)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def raise_for_violations(*groups: List[Violation]) -> None:
    violations = [violation for group in groups for violation in group]
    if violations:
        raise ValidationError(violations)
