from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import BiometricMapping


class BiometricMappingRepository(Protocol):
    def list_all(self) -> Sequence[BiometricMapping]:
        raise NotImplementedError

    def get_by_id(self, mapping_id: int) -> Optional[BiometricMapping]:
        raise NotImplementedError

    def get_by_biometric_id(self, biometric_id: str) -> Optional[BiometricMapping]:
        raise NotImplementedError

    def get_active_for_employee(self, employee_id: int) -> Optional[BiometricMapping]:
        raise NotImplementedError

    def create(self, *, biometric_id: str, employee_id: int, notes: Optional[str] = None) -> int:
        """Raises ConflictError when the biometric id is already mapped."""

        raise NotImplementedError

    def update(self, *, mapping_id: int, is_active: bool, notes: Optional[str]) -> bool:
        raise NotImplementedError

    def delete(self, *, mapping_id: int) -> bool:
        raise NotImplementedError
