from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..core.enums import Role
from ..core.exceptions import AuthorizationError


@dataclass(frozen=True)
class Actor:
    """Who is performing an operation (authenticated upstream)."""

    user_id: Optional[int]
    role: Role
    username: Optional[str] = None


SYSTEM_ACTOR = Actor(user_id=None, role=Role.SUPERUSER, username="system")


def require_role(actor: Actor, minimum: Role) -> None:
    if not actor.role.at_least(minimum):
        raise AuthorizationError("You do not have permission for this action")
