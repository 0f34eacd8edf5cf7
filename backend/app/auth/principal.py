"""The resolved identity attached to every authorized request."""

from __future__ import annotations

from dataclasses import dataclass

# Closed role set.  There is deliberately no ordering between roles: each
# route lists every role it admits.
VALID_ROLES = ("user", "manager", "admin")


@dataclass(frozen=True)
class Principal:
    """Authenticated identity for a request.

    ``user_id`` is ``None`` for principals resolved from an API key.
    """

    role: str
    organization_id: str
    user_id: str | None = None

    def __post_init__(self) -> None:
        if self.role not in VALID_ROLES:
            raise ValueError(f"Invalid role '{self.role}'. Must be one of: {VALID_ROLES}")
        if not self.organization_id:
            raise ValueError("Principal requires a non-empty organization_id")

    @property
    def via_api_key(self) -> bool:
        return self.user_id is None
