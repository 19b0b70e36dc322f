from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Callable, Optional, Type, TypeVar

from flask import jsonify, request

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError
from .authz import Actor
from .datetime_utils import parse_iso_date, parse_iso_datetime
from .pagination import Page, PageRequest

E = TypeVar("E", bound=Enum)


def current_actor() -> Actor:
    """Actor asserted by the upstream gateway through X-User-* headers."""
    role_s = (request.headers.get("X-User-Role") or "").strip().lower()
    if not role_s:
        raise AuthorizationError("Missing X-User-Role header")
    try:
        role = Role(role_s)
    except ValueError:
        raise AuthorizationError(f"Unknown role {role_s!r}")

    user_id_s = (request.headers.get("X-User-Id") or "").strip()
    user_id = int(user_id_s) if user_id_s.isdigit() else None
    username = (request.headers.get("X-User-Name") or "").strip() or None
    return Actor(user_id=user_id, role=role, username=username or (f"user:{user_id}" if user_id else None))


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def arg_date(name: str, *, required: bool = True, default: Optional[date] = None) -> Optional[date]:
    value = request.args.get(name)
    if not value:
        if required and default is None:
            raise ValidationError(f"{name} is required")
        return default
    return parse_iso_date(value)


def arg_int(name: str, *, required: bool = False, default: Optional[int] = None) -> Optional[int]:
    value = request.args.get(name)
    if value in (None, ""):
        if required:
            raise ValidationError(f"{name} is required")
        return default
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def arg_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def body_date(data: dict, name: str) -> date:
    value = data.get(name)
    if not value:
        raise ValidationError(f"{name} is required")
    return parse_iso_date(str(value))


def body_datetime(data: dict, name: str) -> datetime:
    value = data.get(name)
    if not value:
        raise ValidationError(f"{name} is required")
    return parse_iso_datetime(str(value))


def body_int(data: dict, name: str, *, required: bool = True) -> Optional[int]:
    value = data.get(name)
    if value is None or value == "":
        if required:
            raise ValidationError(f"{name} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{name} must be a whole number")
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")


def parse_enum(enum_cls: Type[E], value, name: str) -> Optional[E]:
    if value in (None, ""):
        return None
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {name} {value!r} (expected one of {allowed})")


def page_request() -> PageRequest:
    return PageRequest.of(request.args.get("page"), request.args.get("limit"))


def paginated(page: Page, serialize: Callable = lambda x: x):
    return jsonify(
        {
            "data": [serialize(item) for item in page.items],
            "total": page.total,
            "page": page.page,
            "pageSize": page.page_size,
        }
    )
