import pytest

from conftest import ADMIN, SUPERVISOR
from attendance_ledger.biometric.service import normalize_biometric_id
from attendance_ledger.core.exceptions import (
    AuthorizationError,
    ConflictError,
    EmployeeNotFound,
    MappingNotFound,
    ValidationError,
)


def test_normalize_biometric_id():
    assert normalize_biometric_id(17) == "17"
    assert normalize_biometric_id(17.0) == "17"
    assert normalize_biometric_id("17.0") == "17"
    assert normalize_biometric_id(" 0042 ") == "0042"
    assert normalize_biometric_id(None) == ""


def test_create_mapping(container):
    mapping = container.mapping_service.create(actor=ADMIN, biometric_id=" 17 ", employee_id=1, notes="Reloj principal")

    assert mapping.biometric_id == "17"
    assert mapping.is_active is True
    listed = container.mapping_service.list_mappings()
    assert listed[0]["employee"]["dni"] == "12345678"


def test_create_mapping_validation(container):
    svc = container.mapping_service

    with pytest.raises(AuthorizationError):
        svc.create(actor=SUPERVISOR, biometric_id="17", employee_id=1)
    with pytest.raises(ValidationError):
        svc.create(actor=ADMIN, biometric_id="  ", employee_id=1)
    with pytest.raises(EmployeeNotFound):
        svc.create(actor=ADMIN, biometric_id="17", employee_id=99)


def test_one_active_mapping_per_employee_and_device_id(container):
    svc = container.mapping_service
    first = svc.create(actor=ADMIN, biometric_id="17", employee_id=1)

    with pytest.raises(ConflictError):
        svc.create(actor=ADMIN, biometric_id="18", employee_id=1)
    with pytest.raises(ConflictError):
        svc.create(actor=ADMIN, biometric_id="17", employee_id=2)

    svc.update(actor=ADMIN, mapping_id=first.mapping_id, is_active=False)
    second = svc.create(actor=ADMIN, biometric_id="18", employee_id=1)
    assert second.is_active is True

    with pytest.raises(ConflictError):
        svc.update(actor=ADMIN, mapping_id=first.mapping_id, is_active=True)


def test_update_keeps_notes_unless_given(container):
    svc = container.mapping_service
    mapping = svc.create(actor=ADMIN, biometric_id="17", employee_id=1, notes="Reloj principal")

    updated = svc.update(actor=ADMIN, mapping_id=mapping.mapping_id, is_active=False)
    assert updated.notes == "Reloj principal"

    updated = svc.update(actor=ADMIN, mapping_id=mapping.mapping_id, notes="Reloj de planta")
    assert updated.notes == "Reloj de planta"
    assert updated.is_active is False


def test_delete_mapping(container):
    svc = container.mapping_service
    mapping = svc.create(actor=ADMIN, biometric_id="17", employee_id=1)

    svc.delete(actor=ADMIN, mapping_id=mapping.mapping_id)

    assert svc.list_mappings() == []
    with pytest.raises(MappingNotFound):
        svc.delete(actor=ADMIN, mapping_id=mapping.mapping_id)


def test_search_unmapped_excludes_mapped_and_inactive(container):
    container.mapping_service.create(actor=ADMIN, biometric_id="17", employee_id=1)

    found = container.mapping_service.search_unmapped()
    assert [e.employee_id for e in found] == [2]

    assert container.mapping_service.search_unmapped("gómez")[0].dni == "87654321"
    assert container.mapping_service.search_unmapped("zzz") == []
