from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class Employee:
    """Read model of an employee, owned by the staff module."""

    employee_id: int
    first_names: str
    last_names: str
    dni: str
    hire_date: Optional[date] = None
    is_active: bool = True

    @property
    def label(self) -> str:
        return f"{self.first_names} {self.last_names} - {self.dni}"

    def summary(self) -> dict:
        return {
            "id": self.employee_id,
            "nombres": self.first_names,
            "apellidos": self.last_names,
            "dni": self.dni,
        }
