from __future__ import annotations

from datetime import date, datetime

import pytest
from lxml import etree

from verifactu.config import SUM1_NS
from verifactu.models.breakdown import BreakdownDetails
from verifactu.models.codes import InvoiceType, OperationType, RegimeType, TaxType
from verifactu.models.computer_system import ComputerSystem
from verifactu.models.identifiers import FiscalIdentifier, InvoiceIdentifier
from verifactu.models.records import CancellationRecord, RecordHeader, RegistrationRecord
from verifactu.services.hashing import with_hash

NS = {"sum1": SUM1_NS}


def xml_text(el: etree._Element, xpath: str) -> str | None:
    """Extract text from an XML element by xpath (``sum1:`` prefix available)."""
    found = el.find(xpath, namespaces=NS)
    return found.text if found is not None else None


def child_names(el: etree._Element) -> list[str]:
    """Local names of the direct children of *el*, in document order."""
    return [etree.QName(c).localname for c in el]


def ts(value: str) -> datetime:
    return datetime.fromisoformat(value)


def subject_line(base: str, rate: str, amount: str) -> BreakdownDetails:
    return BreakdownDetails(
        tax_type=TaxType.IVA,
        regime_type=RegimeType.C01,
        operation_type=OperationType.SUBJECT,
        base_amount=base,
        tax_rate=rate,
        tax_amount=amount,
    )


# --- Computer system fixtures ---


@pytest.fixture
def system_dict() -> dict:
    return {
        "vendor_name": "Perico de los Palotes, S.A.",
        "vendor_nif": "A00000000",
        "name": "Test SIF",
        "id": "TS",
        "version": "0.0.1",
        "installation_number": "01234",
        "only_supports_verifactu": True,
        "supports_multiple_taxpayers": False,
        "has_multiple_taxpayers": False,
    }


@pytest.fixture
def computer_system(system_dict: dict) -> ComputerSystem:
    return ComputerSystem.from_dict(system_dict)


@pytest.fixture
def taxpayer() -> FiscalIdentifier:
    return FiscalIdentifier(name="Perico de los Palotes, S.A.", nif="A00000000")


# --- Record fixtures ---


@pytest.fixture
def first_registration() -> RegistrationRecord:
    """First record of a chain: simplified invoice PRUEBA-0001."""
    return with_hash(
        RegistrationRecord(
            header=RecordHeader(
                invoice_id=InvoiceIdentifier("A00000000", "PRUEBA-0001", date(2025, 6, 1)),
                hashed_at=ts("2025-06-01T10:20:30+02:00"),
            ),
            issuer_name="Perico de los Palotes, S.A.",
            invoice_type=InvoiceType.SIMPLIFIED,
            description="Factura simplificada de prueba",
            breakdown=[subject_line("10.00", "21.00", "2.10")],
            total_tax_amount="2.10",
            total_amount="12.10",
        )
    )


@pytest.fixture
def chained_registration() -> RegistrationRecord:
    """Simplified invoice PRUEBA-0002 linked to a previous record."""
    return with_hash(
        RegistrationRecord(
            header=RecordHeader(
                invoice_id=InvoiceIdentifier("A00000000", "PRUEBA-0002", date(2025, 6, 2)),
                hashed_at=ts("2025-06-02T20:30:40+02:00"),
                previous_invoice_id=InvoiceIdentifier("A00000000", "PRUEBA-001", date(2025, 6, 1)),
                previous_hash="A" * 64,
            ),
            issuer_name="Perico de los Palotes, S.A.",
            invoice_type=InvoiceType.SIMPLIFIED,
            description="Factura simplificada de prueba",
            breakdown=[subject_line("100.00", "21.00", "21.00")],
            total_tax_amount="21.00",
            total_amount="121.00",
        )
    )


@pytest.fixture
def invoice_with_recipient() -> RegistrationRecord:
    """Complete invoice (F1) for a domestic recipient."""
    return with_hash(
        RegistrationRecord(
            header=RecordHeader(
                invoice_id=InvoiceIdentifier("A00000000", "TEST", date(2025, 6, 1)),
                hashed_at=ts("2025-06-01T20:30:40+02:00"),
            ),
            issuer_name="Perico de los Palotes, S.A.",
            invoice_type=InvoiceType.INVOICE,
            description="Factura de prueba",
            breakdown=[subject_line("10.00", "21.00", "2.10")],
            total_tax_amount="2.10",
            total_amount="12.10",
            recipients=[FiscalIdentifier("Antonio García Pérez", "00000000A")],
        )
    )


@pytest.fixture
def cancellation() -> CancellationRecord:
    invoice_id = InvoiceIdentifier("89890001K", "12345679/G34", date(2024, 1, 1))
    return with_hash(
        CancellationRecord(
            header=RecordHeader(
                invoice_id=invoice_id,
                hashed_at=ts("2024-01-01T19:20:40+01:00"),
                previous_invoice_id=invoice_id,
                previous_hash="F7B94CFD8924EDFF273501B01EE5153E4CE8F259766F88CF6ACB8935802A2B97",
            ),
        )
    )


# --- Config dir fixture ---


@pytest.fixture
def config_dir(tmp_path, system_dict):
    import yaml

    cfg = tmp_path / "config"
    cfg.mkdir()
    (cfg / "system.yaml").write_text(yaml.dump(system_dict))
    (cfg / "taxpayer.yaml").write_text(
        yaml.dump({"name": "Perico de los Palotes, S.A.", "nif": "A00000000"}, allow_unicode=True)
    )
    return cfg
