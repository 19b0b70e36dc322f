from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .model import Employee


class EmployeeRepository(Protocol):
    """Read-only access to employees; the staff module owns writes."""

    def get_by_id(self, employee_id: int) -> Optional[Employee]:
        raise NotImplementedError

    def get_many(self, employee_ids: Iterable[int]) -> dict[int, Employee]:
        raise NotImplementedError

    def list_active(self) -> Sequence[Employee]:
        raise NotImplementedError

    def search_unmapped(self, query: str, *, limit: int = 20) -> Sequence[Employee]:
        """Active employees without an active biometric mapping, matched by name or DNI."""

        raise NotImplementedError
