from __future__ import annotations

import dataclasses
from datetime import date, datetime, timedelta, timezone

import pytest

from verifactu.models.breakdown import BreakdownDetails
from verifactu.models.codes import InvoiceType, OperationType, RegimeType, TaxType
from verifactu.models.computer_system import ComputerSystem
from verifactu.models.identifiers import FiscalIdentifier, InvoiceIdentifier
from verifactu.models.records import RecordKind
from verifactu.models.responses import AeatResponse, ResponseStatus


class TestInvoiceIdentifier:
    def test_equality_ignores_time_of_day(self):
        a = InvoiceIdentifier("A00000000", "PRUEBA-0001", datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc))
        b = InvoiceIdentifier(
            "A00000000", "PRUEBA-0001", datetime(2025, 6, 1, 23, 59, tzinfo=timezone(timedelta(hours=2)))
        )
        assert a == b
        assert a.issue_date == date(2025, 6, 1)

    def test_inequality(self):
        a = InvoiceIdentifier("A00000000", "PRUEBA-0001", date(2025, 6, 1))
        assert a != dataclasses.replace(a, invoice_number="PRUEBA-0002")
        assert a != dataclasses.replace(a, issuer_id="B00000000")
        assert a != dataclasses.replace(a, issue_date=date(2025, 6, 2))

    def test_frozen(self):
        a = InvoiceIdentifier("A00000000", "PRUEBA-0001", date(2025, 6, 1))
        with pytest.raises(dataclasses.FrozenInstanceError):
            a.invoice_number = "X"  # type: ignore[misc]


class TestCodes:
    def test_operation_type_helpers(self):
        assert OperationType.SUBJECT.is_subject
        assert OperationType.PASSIVE_SUBJECT.is_subject
        assert not OperationType.NON_SUBJECT.is_subject
        assert OperationType.NON_SUBJECT_BY_LOCATION.is_non_subject
        assert all(OperationType(f"E{i}").is_exempt for i in range(1, 7))
        assert not OperationType.SUBJECT.is_exempt

    def test_invoice_type_helpers(self):
        assert InvoiceType.SIMPLIFIED.is_simplified
        assert InvoiceType.R5.is_simplified
        assert not InvoiceType.INVOICE.is_simplified
        assert InvoiceType.R3.is_corrective
        assert not InvoiceType.SUBSTITUTIVE.is_corrective
        assert InvoiceType.SUBSTITUTIVE.is_substitutive

    def test_surcharge_regime(self):
        assert RegimeType.C18.requires_surcharge
        assert not RegimeType.C01.requires_surcharge

    def test_wire_values(self):
        assert str(InvoiceType.SIMPLIFIED) == "F2"
        assert RegimeType("18") is RegimeType.C18


class TestRecords:
    def test_kind_discriminant(self, first_registration, cancellation):
        assert first_registration.kind is RecordKind.REGISTRATION
        assert cancellation.kind is RecordKind.CANCELLATION
        assert "kind" not in [f.name for f in dataclasses.fields(first_registration)]

    def test_collections_are_tuples(self, first_registration):
        record = dataclasses.replace(first_registration, recipients=[FiscalIdentifier("X", "00000000A")])
        assert isinstance(record.recipients, tuple)
        assert isinstance(record.breakdown, tuple)

    def test_operation_date_truncated(self, first_registration):
        record = dataclasses.replace(first_registration, operation_date=datetime(2025, 5, 15, 12, 0))
        assert record.operation_date == date(2025, 5, 15)

    def test_is_first(self, first_registration, chained_registration):
        assert first_registration.header.is_first
        assert not chained_registration.header.is_first

    def test_hashed_at_whole_seconds(self, first_registration):
        hashed_at = datetime(2025, 6, 1, 10, 20, 30, 999999, tzinfo=timezone.utc)
        header = dataclasses.replace(first_registration.header, hashed_at=hashed_at)
        assert header.hashed_at == datetime(2025, 6, 1, 10, 20, 30, tzinfo=timezone.utc)
        assert header.hashed_at.tzinfo is timezone.utc


class TestBreakdownDetails:
    def test_exempt_reason_not_compared(self):
        line = BreakdownDetails(TaxType.IVA, RegimeType.C01, OperationType.EXEMPT_ART_20, "10.00")
        annotated = dataclasses.replace(line, exempt_reason_code="E1", exempt_reason="Exenta art. 20")
        assert annotated == line
        assert annotated.exempt_reason == "Exenta art. 20"


class TestComputerSystem:
    def test_from_dict(self, system_dict):
        system = ComputerSystem.from_dict(system_dict)
        assert system.vendor_nif == "A00000000"
        assert system.id == "TS"
        assert system.only_supports_verifactu is True

    def test_from_dict_defaults(self, system_dict):
        for key in ("only_supports_verifactu", "supports_multiple_taxpayers", "has_multiple_taxpayers"):
            del system_dict[key]
        system = ComputerSystem.from_dict(system_dict)
        assert system.only_supports_verifactu is True
        assert system.supports_multiple_taxpayers is False
        assert system.has_multiple_taxpayers is False

    def test_numeric_yaml_values_become_strings(self, system_dict):
        system_dict["installation_number"] = 1234
        system_dict["version"] = 1.0
        system = ComputerSystem.from_dict(system_dict)
        assert system.installation_number == "1234"
        assert system.version == "1.0"


def test_fiscal_identifier_from_dict():
    party = FiscalIdentifier.from_dict({"name": "Perico de los Palotes, S.A.", "nif": "A00000000"})
    assert party == FiscalIdentifier("Perico de los Palotes, S.A.", "A00000000")


def test_response_items_are_tuples():
    response = AeatResponse(wait_seconds=60, status=ResponseStatus.CORRECT, items=[])
    assert response.items == ()
