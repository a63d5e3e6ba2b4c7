"""Conversion between record models and their ``sum1`` XML elements."""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import TypeVar

from lxml import etree

from verifactu.config import HASH_TYPE_SHA256, ID_VERSION, SUM1_NS
from verifactu.models.breakdown import BreakdownDetails
from verifactu.models.codes import (
    CorrectiveType,
    ForeignIdType,
    InvoiceType,
    OperationType,
    RegimeType,
    TaxType,
)
from verifactu.models.computer_system import ComputerSystem
from verifactu.models.identifiers import (
    FiscalIdentifier,
    ForeignFiscalIdentifier,
    InvoiceIdentifier,
    Recipient,
)
from verifactu.models.records import (
    CancellationRecord,
    Record,
    RecordHeader,
    RecordKind,
    RegistrationRecord,
)
from verifactu.services.exceptions import DocumentImportError
from verifactu.utils.formatters import format_date, format_timestamp, parse_date, parse_timestamp

logger = logging.getLogger(__name__)

NSMAP = {"sum1": SUM1_NS}

E = TypeVar("E", bound=Enum)


def _q(name: str) -> str:
    return f"{{{SUM1_NS}}}{name}"


def _sub(parent: etree._Element, tag: str, text: str | None = None) -> etree._Element:
    el = etree.SubElement(parent, _q(tag))
    if text is not None:
        el.text = text
    return el


def _flag(value: bool) -> str:
    return "S" if value else "N"


# --- Export ---


def _export_invoice_id(parent: etree._Element, invoice_id: InvoiceIdentifier, suffix: str = "") -> None:
    _sub(parent, f"IDEmisorFactura{suffix}", invoice_id.issuer_id)
    _sub(parent, f"NumSerieFactura{suffix}", invoice_id.invoice_number)
    _sub(parent, f"FechaExpedicionFactura{suffix}", format_date(invoice_id.issue_date))


def _export_prior_rejection(parent: etree._Element, value: bool | None) -> None:
    if value is True:
        _sub(parent, "RechazoPrevio", "S")
    elif value is None:
        _sub(parent, "RechazoPrevio", "X")


def _export_recipient(parent: etree._Element, recipient: Recipient) -> None:
    el = _sub(parent, "IDDestinatario")
    _sub(el, "NombreRazon", recipient.name)
    if isinstance(recipient, FiscalIdentifier):
        _sub(el, "NIF", recipient.nif)
        return
    other = _sub(el, "IDOtro")
    if recipient.country is not None:
        _sub(other, "CodigoPais", recipient.country)
    _sub(other, "IDType", str(recipient.type))
    _sub(other, "ID", recipient.value)


def _export_breakdown(parent: etree._Element, details: BreakdownDetails) -> None:
    el = _sub(parent, "DetalleDesglose")
    _sub(el, "Impuesto", str(details.tax_type))
    _sub(el, "ClaveRegimen", str(details.regime_type))
    if details.operation_type.is_exempt:
        _sub(el, "OperacionExenta", str(details.operation_type))
    else:
        _sub(el, "CalificacionOperacion", str(details.operation_type))
    if details.tax_rate is not None:
        _sub(el, "TipoImpositivo", details.tax_rate)
    _sub(el, "BaseImponibleOimporteNoSujeto", details.base_amount)
    if details.tax_amount is not None:
        _sub(el, "CuotaRepercutida", details.tax_amount)
    if details.surcharge_rate is not None:
        _sub(el, "TipoRecargoEquivalencia", details.surcharge_rate)
    if details.surcharge_amount is not None:
        _sub(el, "CuotaRecargoEquivalencia", details.surcharge_amount)


def _export_registration(el: etree._Element, record: RegistrationRecord) -> None:
    _export_invoice_id(_sub(el, "IDFactura"), record.header.invoice_id)
    _sub(el, "NombreRazonEmisor", record.issuer_name)
    _sub(el, "Subsanacion", _flag(record.is_correction))
    _export_prior_rejection(el, record.is_prior_rejection)
    _sub(el, "TipoFactura", str(record.invoice_type))

    if record.corrective_type is not None:
        _sub(el, "TipoRectificativa", str(record.corrective_type))
    if record.corrected_invoices:
        group = _sub(el, "FacturasRectificadas")
        for invoice_id in record.corrected_invoices:
            _export_invoice_id(_sub(group, "IDFacturaRectificada"), invoice_id)
    if record.replaced_invoices:
        group = _sub(el, "FacturasSustituidas")
        for invoice_id in record.replaced_invoices:
            _export_invoice_id(_sub(group, "IDFacturaSustituida"), invoice_id)
    if record.corrected_base_amount is not None and record.corrected_tax_amount is not None:
        amounts = _sub(el, "ImporteRectificacion")
        _sub(amounts, "BaseRectificada", record.corrected_base_amount)
        _sub(amounts, "CuotaRectificada", record.corrected_tax_amount)
    if record.operation_date is not None:
        _sub(el, "FechaOperacion", format_date(record.operation_date))

    _sub(el, "DescripcionOperacion", record.description)

    if record.recipients:
        group = _sub(el, "Destinatarios")
        for recipient in record.recipients:
            _export_recipient(group, recipient)

    desglose = _sub(el, "Desglose")
    for details in record.breakdown:
        _export_breakdown(desglose, details)

    _sub(el, "CuotaTotal", record.total_tax_amount)
    _sub(el, "ImporteTotal", record.total_amount)


def _export_cancellation(el: etree._Element, record: CancellationRecord) -> None:
    _export_invoice_id(_sub(el, "IDFactura"), record.header.invoice_id, suffix="Anulada")
    if record.without_prior_record:
        _sub(el, "SinRegistroPrevio", "S")
    _export_prior_rejection(el, record.is_prior_rejection)


_EXPORTERS = {
    RecordKind.REGISTRATION: _export_registration,
    RecordKind.CANCELLATION: _export_cancellation,
}


def system_to_document(parent: etree._Element, system: ComputerSystem) -> etree._Element:
    """Append a ``SistemaInformatico`` element describing *system* to *parent*."""
    el = _sub(parent, "SistemaInformatico")
    _sub(el, "NombreRazon", system.vendor_name)
    _sub(el, "NIF", system.vendor_nif)
    _sub(el, "NombreSistemaInformatico", system.name)
    _sub(el, "IdSistemaInformatico", system.id)
    _sub(el, "Version", system.version)
    _sub(el, "NumeroInstalacion", system.installation_number)
    _sub(el, "TipoUsoPosibleSoloVerifactu", _flag(system.only_supports_verifactu))
    _sub(el, "TipoUsoPosibleMultiOT", _flag(system.supports_multiple_taxpayers))
    _sub(el, "IndicadorMultiplesOT", _flag(system.has_multiple_taxpayers))
    return el


def to_document(
    record: Record,
    system: ComputerSystem,
    parent: etree._Element | None = None,
) -> etree._Element:
    """Build the ``sum1:RegistroAlta`` / ``sum1:RegistroAnulacion`` element for *record*.

    When *parent* is given the element is appended to it, otherwise a new
    root is created. The record must already be hashed.
    """
    header = record.header
    if header.hash is None:
        raise ValueError("Cannot export a record that has not been hashed")

    if parent is None:
        el = etree.Element(_q(record.kind), nsmap=NSMAP)
    else:
        el = etree.SubElement(parent, _q(record.kind))

    _sub(el, "IDVersion", ID_VERSION)
    _EXPORTERS[record.kind](el, record)

    chaining = _sub(el, "Encadenamiento")
    if header.previous_invoice_id is None:
        _sub(chaining, "PrimerRegistro", "S")
    else:
        previous = _sub(chaining, "RegistroAnterior")
        _export_invoice_id(previous, header.previous_invoice_id)
        _sub(previous, "Huella", header.previous_hash)

    system_to_document(el, system)

    _sub(el, "FechaHoraHusoGenRegistro", format_timestamp(header.hashed_at))
    _sub(el, "TipoHuella", HASH_TYPE_SHA256)
    _sub(el, "Huella", header.hash)
    return el


# --- Import ---


def _missing(name: str) -> DocumentImportError:
    return DocumentImportError(f"Missing <sum1:{name} /> element", element=name)


def _invalid(name: str) -> DocumentImportError:
    return DocumentImportError(f"Invalid value for <sum1:{name} /> element", element=name)


def _child(parent: etree._Element, name: str) -> etree._Element:
    el = parent.find(_q(name))
    if el is None:
        raise _missing(name)
    return el


def _text(parent: etree._Element, name: str) -> str:
    return _child(parent, name).text or ""


def _optional_text(parent: etree._Element, name: str) -> str | None:
    el = parent.find(_q(name))
    if el is None:
        return None
    return el.text or ""


def _enum(enum_cls: type[E], raw: str, name: str) -> E:
    try:
        return enum_cls(raw)
    except ValueError:
        raise _invalid(name) from None


def _bool(parent: etree._Element, name: str) -> bool:
    raw = _optional_text(parent, name)
    if raw is None or raw == "N":
        return False
    if raw == "S":
        return True
    raise _invalid(name)


def _prior_rejection(parent: etree._Element) -> bool | None:
    raw = _optional_text(parent, "RechazoPrevio")
    if raw == "X":
        return None
    return _bool(parent, "RechazoPrevio")


def _date(raw: str, name: str) -> date:
    try:
        return parse_date(raw)
    except ValueError:
        raise _invalid(name) from None


def _import_invoice_id(parent: etree._Element, suffix: str = "") -> InvoiceIdentifier:
    date_name = f"FechaExpedicionFactura{suffix}"
    return InvoiceIdentifier(
        issuer_id=_text(parent, f"IDEmisorFactura{suffix}"),
        invoice_number=_text(parent, f"NumSerieFactura{suffix}"),
        issue_date=_date(_text(parent, date_name), date_name),
    )


def _import_recipient(el: etree._Element) -> Recipient:
    name = _text(el, "NombreRazon")
    nif = _optional_text(el, "NIF")
    if nif is not None:
        return FiscalIdentifier(name=name, nif=nif)
    other = _child(el, "IDOtro")
    return ForeignFiscalIdentifier(
        name=name,
        country=_optional_text(other, "CodigoPais"),
        type=_enum(ForeignIdType, _text(other, "IDType"), "IDType"),
        value=_text(other, "ID"),
    )


def _import_breakdown(el: etree._Element) -> BreakdownDetails:
    operation_name = "CalificacionOperacion"
    raw_operation = _optional_text(el, operation_name)
    if raw_operation is None:
        operation_name = "OperacionExenta"
        raw_operation = _optional_text(el, operation_name)
    if raw_operation is None:
        raise _missing("CalificacionOperacion")

    return BreakdownDetails(
        tax_type=_enum(TaxType, _text(el, "Impuesto"), "Impuesto"),
        regime_type=_enum(RegimeType, _text(el, "ClaveRegimen"), "ClaveRegimen"),
        operation_type=_enum(OperationType, raw_operation, operation_name),
        base_amount=_text(el, "BaseImponibleOimporteNoSujeto"),
        tax_rate=_optional_text(el, "TipoImpositivo"),
        tax_amount=_optional_text(el, "CuotaRepercutida"),
        surcharge_rate=_optional_text(el, "TipoRecargoEquivalencia"),
        surcharge_amount=_optional_text(el, "CuotaRecargoEquivalencia"),
    )


def _import_registration(el: etree._Element, chain: dict) -> RegistrationRecord:
    invoice_id = _import_invoice_id(_child(el, "IDFactura"))
    issuer_name = _text(el, "NombreRazonEmisor")
    is_correction = _bool(el, "Subsanacion")
    is_prior_rejection = _prior_rejection(el)
    invoice_type = _enum(InvoiceType, _text(el, "TipoFactura"), "TipoFactura")

    raw_corrective = _optional_text(el, "TipoRectificativa")
    corrective_type = (
        _enum(CorrectiveType, raw_corrective, "TipoRectificativa") if raw_corrective is not None else None
    )
    corrected = [
        _import_invoice_id(item)
        for item in el.iterfind(f"{_q('FacturasRectificadas')}/{_q('IDFacturaRectificada')}")
    ]
    replaced = [
        _import_invoice_id(item)
        for item in el.iterfind(f"{_q('FacturasSustituidas')}/{_q('IDFacturaSustituida')}")
    ]
    corrected_base = corrected_tax = None
    amounts = el.find(_q("ImporteRectificacion"))
    if amounts is not None:
        corrected_base = _optional_text(amounts, "BaseRectificada")
        corrected_tax = _optional_text(amounts, "CuotaRectificada")

    raw_operation_date = _optional_text(el, "FechaOperacion")
    operation_date = _date(raw_operation_date, "FechaOperacion") if raw_operation_date is not None else None

    description = _text(el, "DescripcionOperacion")
    recipients = [
        _import_recipient(item)
        for item in el.iterfind(f"{_q('Destinatarios')}/{_q('IDDestinatario')}")
    ]
    breakdown = [
        _import_breakdown(item)
        for item in el.iterfind(f"{_q('Desglose')}/{_q('DetalleDesglose')}")
    ]

    return RegistrationRecord(
        header=_header(el, invoice_id, chain),
        issuer_name=issuer_name,
        invoice_type=invoice_type,
        description=description,
        breakdown=breakdown,
        total_tax_amount=_text(el, "CuotaTotal"),
        total_amount=_text(el, "ImporteTotal"),
        recipients=recipients,
        operation_date=operation_date,
        corrective_type=corrective_type,
        corrected_invoices=corrected,
        corrected_base_amount=corrected_base,
        corrected_tax_amount=corrected_tax,
        replaced_invoices=replaced,
        is_correction=is_correction,
        is_prior_rejection=is_prior_rejection,
    )


def _import_cancellation(el: etree._Element, chain: dict) -> CancellationRecord:
    invoice_id = _import_invoice_id(_child(el, "IDFactura"), suffix="Anulada")
    return CancellationRecord(
        header=_header(el, invoice_id, chain),
        without_prior_record=_bool(el, "SinRegistroPrevio"),
        is_prior_rejection=_prior_rejection(el),
    )


_IMPORTERS = {
    RecordKind.REGISTRATION: _import_registration,
    RecordKind.CANCELLATION: _import_cancellation,
}


def _import_chain(el: etree._Element) -> dict:
    chain = _child(el, "Encadenamiento")
    previous = chain.find(_q("RegistroAnterior"))
    if previous is None:
        if chain.find(_q("PrimerRegistro")) is None:
            raise _missing("RegistroAnterior")
        return {"previous_invoice_id": None, "previous_hash": None}
    return {
        "previous_invoice_id": _import_invoice_id(previous),
        "previous_hash": _text(previous, "Huella"),
    }


def _header(el: etree._Element, invoice_id: InvoiceIdentifier, chain: dict) -> RecordHeader:
    raw_hashed_at = _text(el, "FechaHoraHusoGenRegistro")
    try:
        hashed_at = parse_timestamp(raw_hashed_at)
    except ValueError:
        raise _invalid("FechaHoraHusoGenRegistro") from None
    return RecordHeader(
        invoice_id=invoice_id,
        hashed_at=hashed_at,
        hash=_text(el, "Huella"),
        **chain,
    )


def from_document(element: etree._Element) -> Record:
    """Parse a ``sum1:RegistroAlta`` or ``sum1:RegistroAnulacion`` element.

    Raises DocumentImportError when the element is in another namespace, has
    an unexpected name, lacks a required child or holds an unknown code.
    The result is not validated.
    """
    qname = etree.QName(element)
    if qname.namespace != SUM1_NS:
        raise DocumentImportError('Node namespace must be "sum1"', element=qname.localname)
    try:
        kind = RecordKind(qname.localname)
    except ValueError:
        raise DocumentImportError("Unexpected node type", element=qname.localname) from None

    record = _IMPORTERS[kind](element, _import_chain(element))
    logger.debug("Imported %s %s", kind, record.header.invoice_id.invoice_number)
    return record


def system_from_document(element: etree._Element) -> ComputerSystem:
    """Parse a ``sum1:SistemaInformatico`` element."""
    return ComputerSystem(
        vendor_name=_text(element, "NombreRazon"),
        vendor_nif=_text(element, "NIF"),
        name=_text(element, "NombreSistemaInformatico"),
        id=_text(element, "IdSistemaInformatico"),
        version=_text(element, "Version"),
        installation_number=_text(element, "NumeroInstalacion"),
        only_supports_verifactu=_bool(element, "TipoUsoPosibleSoloVerifactu"),
        supports_multiple_taxpayers=_bool(element, "TipoUsoPosibleMultiOT"),
        has_multiple_taxpayers=_bool(element, "IndicadorMultiplesOT"),
    )
