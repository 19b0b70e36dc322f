from __future__ import annotations

import logging
from typing import Optional

from ..common.authz import Actor, require_role
from ..common.validators import optional_text, require_non_empty
from ..core.enums import Role
from ..core.exceptions import ConflictError, EmployeeNotFound, MappingNotFound
from ..employees.repository import EmployeeRepository
from .model import BiometricMapping
from .repository import BiometricMappingRepository

logger = logging.getLogger(__name__)


def normalize_biometric_id(value) -> str:
    """Device ids come back from spreadsheets as ints, floats ("17.0") or padded strings."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if text.endswith(".0") and text[:-2].isdigit():
        text = text[:-2]
    return text


class BiometricMappingService:
    def __init__(self, mappings: BiometricMappingRepository, employees: EmployeeRepository):
        self._mappings = mappings
        self._employees = employees

    def list_mappings(self) -> list[dict]:
        mappings = self._mappings.list_all()
        employees = self._employees.get_many({m.employee_id for m in mappings})
        out = []
        for m in mappings:
            employee = employees.get(m.employee_id)
            out.append({"mapping": m, "employee": employee.summary() if employee else None})
        return out

    def search_unmapped(self, query: Optional[str] = None, *, limit: int = 20):
        return self._employees.search_unmapped((query or "").strip(), limit=int(limit))

    def create(
        self,
        *,
        actor: Actor,
        biometric_id: str,
        employee_id: int,
        notes: Optional[str] = None,
    ) -> BiometricMapping:
        require_role(actor, Role.ADMIN)
        biometric_id = require_non_empty(normalize_biometric_id(biometric_id), "Biometric id")
        if self._employees.get_by_id(int(employee_id)) is None:
            raise EmployeeNotFound(f"Employee {employee_id} not found")
        if self._mappings.get_active_for_employee(int(employee_id)) is not None:
            raise ConflictError(f"Employee {employee_id} already has an active biometric mapping")

        mapping_id = self._mappings.create(
            biometric_id=biometric_id,
            employee_id=int(employee_id),
            notes=optional_text(notes),
        )
        logger.info(
            "Biometric id %s mapped to employee %s by %s",
            biometric_id,
            employee_id,
            actor.username or actor.user_id,
        )
        return self._get(mapping_id)

    def update(
        self,
        *,
        actor: Actor,
        mapping_id: int,
        is_active: Optional[bool] = None,
        notes: Optional[str] = None,
    ) -> BiometricMapping:
        require_role(actor, Role.ADMIN)
        current = self._get(mapping_id)

        active = current.is_active if is_active is None else bool(is_active)
        if active and not current.is_active:
            other = self._mappings.get_active_for_employee(current.employee_id)
            if other is not None and other.mapping_id != current.mapping_id:
                raise ConflictError(f"Employee {current.employee_id} already has an active biometric mapping")

        self._mappings.update(
            mapping_id=current.mapping_id,
            is_active=active,
            notes=optional_text(notes) if notes is not None else current.notes,
        )
        logger.info("Biometric mapping %s updated by %s (active=%s)", mapping_id, actor.username or actor.user_id, active)
        return self._get(mapping_id)

    def delete(self, *, actor: Actor, mapping_id: int) -> None:
        require_role(actor, Role.ADMIN)
        if not self._mappings.delete(mapping_id=int(mapping_id)):
            raise MappingNotFound(f"Mapping {mapping_id} not found")
        logger.info("Biometric mapping %s deleted by %s", mapping_id, actor.username or actor.user_id)

    def resolver(self) -> dict[str, BiometricMapping]:
        """Snapshot of every mapping keyed by biometric id, taken once per import batch."""
        return {m.biometric_id: m for m in self._mappings.list_all()}

    def _get(self, mapping_id: int) -> BiometricMapping:
        mapping = self._mappings.get_by_id(int(mapping_id))
        if mapping is None:
            raise MappingNotFound(f"Mapping {mapping_id} not found")
        return mapping
