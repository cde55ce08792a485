"""
Tests for DomainValidator.

Verifies:
- Each individual check against the seeded catalog
- validate_all reports every failing check, in check order
- A missing entity yields a single "not found" message for that check
"""

from uuid import uuid4

import pytest

from compounding_kernel.domain.values import ProductionLine, ValidationInput
from compounding_kernel.exceptions import DomainValidationError
from compounding_kernel.services.catalog_lookup import CatalogLookup
from compounding_kernel.services.domain_validator import DomainValidator


@pytest.fixture
def validator(session, catalog) -> DomainValidator:
    return DomainValidator(CatalogLookup(session))


def _input(catalog, **overrides) -> ValidationInput:
    values = dict(
        medicine_id=catalog.medicine_id,
        laboratory_id=catalog.lab_id,
        vehicle_id=catalog.saline_id,
        container_id=catalog.bag_id,
        production_line=ProductionLine.STERILE,
    )
    values.update(overrides)
    return ValidationInput(**values)


class TestIndividualChecks:

    def test_enabled_medicine(self, validator, catalog):
        assert validator.validate_medicine(catalog.medicine_id).is_valid

    def test_disabled_medicine(self, validator, catalog):
        result = validator.validate_medicine(catalog.disabled_medicine_id)
        assert not result.is_valid
        assert result.errors == ("Medicine 'Withdrawn' is not enabled for production",)

    def test_disabled_lab(self, validator, catalog):
        result = validator.validate_lab(catalog.disabled_lab_id)
        assert result.errors == ("Laboratory 'Closed Labs' is not enabled",)

    def test_vehicle_line_compatibility(self, validator, catalog):
        assert validator.validate_vehicle(catalog.onco_only_vehicle_id, ProductionLine.ONCO).is_valid
        result = validator.validate_vehicle(catalog.onco_only_vehicle_id, ProductionLine.STERILE)
        assert result.errors == ("Vehicle 'Dextrose 5%' is not compatible with line STERILE",)

    def test_container(self, validator, catalog):
        assert validator.validate_container(catalog.syringe_id).is_valid

    def test_stability_is_exact_tuple(self, validator, catalog):
        assert validator.validate_stability(
            catalog.medicine_id, catalog.lab_id, catalog.saline_id, catalog.syringe_id
        ).is_valid
        assert not validator.validate_stability(
            catalog.onco_medicine_id, catalog.lab_id, catalog.saline_id, catalog.syringe_id
        ).is_valid


class TestValidateAll:

    def test_valid_combination(self, validator, catalog):
        assert validator.validate_all(_input(catalog)).is_valid

    def test_collects_every_failure(self, validator, catalog):
        with pytest.raises(DomainValidationError) as exc_info:
            validator.validate_all(
                _input(
                    catalog,
                    medicine_id=catalog.disabled_medicine_id,
                    vehicle_id=catalog.onco_only_vehicle_id,
                )
            )
        assert exc_info.value.messages == (
            "Medicine 'Withdrawn' is not enabled for production",
            "Vehicle 'Dextrose 5%' is not compatible with line STERILE",
        )

    def test_missing_medicine_single_not_found(self, validator, catalog):
        missing = uuid4()
        with pytest.raises(DomainValidationError) as exc_info:
            validator.validate_all(_input(catalog, medicine_id=missing))
        messages = exc_info.value.messages
        assert messages[0] == f"Medicine {missing} not found"
        assert sum("not found" in m for m in messages) == 1
        # The stability check still runs for the unknown tuple
        assert messages[-1].startswith("No stability registered")

    def test_failure_is_logged(self, validator, catalog, captured_logs):
        with pytest.raises(DomainValidationError):
            validator.validate_all(_input(catalog, laboratory_id=catalog.disabled_lab_id))
        failures = [r for r in captured_logs() if r["message"] == "domain_validation_failed"]
        assert len(failures) == 1
        assert failures[0]["error_count"] == 2
