from __future__ import annotations

import logging
from collections.abc import Sequence

from lxml import etree

from verifactu.config import MAX_RECORDS_PER_SUBMISSION, SOAPENV_NS, SUM1_NS, SUM_NS
from verifactu.models.computer_system import ComputerSystem
from verifactu.models.identifiers import FiscalIdentifier
from verifactu.models.records import Record
from verifactu.models.submission import RequirementSubmission, VoluntaryDiscontinuation
from verifactu.services.record_codec import to_document
from verifactu.utils.formatters import format_date

logger = logging.getLogger(__name__)

NSMAP = {"soapenv": SOAPENV_NS, "sum": SUM_NS, "sum1": SUM1_NS}


def _soap(name: str) -> str:
    return f"{{{SOAPENV_NS}}}{name}"


def _sum(name: str) -> str:
    return f"{{{SUM_NS}}}{name}"


def _sub1(parent: etree._Element, tag: str, text: str | None = None) -> etree._Element:
    el = etree.SubElement(parent, f"{{{SUM1_NS}}}{tag}")
    if text is not None:
        el.text = text
    return el


def _party(parent: etree._Element, tag: str, party: FiscalIdentifier) -> None:
    el = _sub1(parent, tag)
    _sub1(el, "NombreRazon", party.name)
    _sub1(el, "NIF", party.nif)


def build_envelope(
    records: Sequence[Record],
    system: ComputerSystem,
    taxpayer: FiscalIdentifier,
    representative: FiscalIdentifier | None = None,
    discontinuation: VoluntaryDiscontinuation | None = None,
    requirement: RequirementSubmission | None = None,
) -> etree._Element:
    """Build the SOAP envelope for a RegFactuSistemaFacturacion submission.

    Every record must already be hashed. Records are written in the order
    given, which should follow the chain.
    """
    if not records:
        raise ValueError("A submission must contain at least one record")
    if len(records) > MAX_RECORDS_PER_SUBMISSION:
        raise ValueError(
            f"A submission cannot contain more than {MAX_RECORDS_PER_SUBMISSION} records, got {len(records)}"
        )

    envelope = etree.Element(_soap("Envelope"), nsmap=NSMAP)
    etree.SubElement(envelope, _soap("Header"))
    body = etree.SubElement(envelope, _soap("Body"))
    base = etree.SubElement(body, _sum("RegFactuSistemaFacturacion"))

    cabecera = etree.SubElement(base, _sum("Cabecera"))
    _party(cabecera, "ObligadoEmision", taxpayer)
    if representative is not None:
        _party(cabecera, "Representante", representative)
    if discontinuation is not None:
        voluntary = _sub1(cabecera, "RemisionVoluntaria")
        if discontinuation.end_date is not None:
            _sub1(voluntary, "FechaFinVeriFactu", format_date(discontinuation.end_date))
        _sub1(voluntary, "Incidencia", "S" if discontinuation.incident else "N")
    if requirement is not None:
        required = _sub1(cabecera, "RemisionRequerimiento")
        _sub1(required, "RefRequerimiento", requirement.reference)
        if requirement.is_end is not None:
            _sub1(required, "FinRequerimiento", "S" if requirement.is_end else "N")

    for record in records:
        to_document(record, system, parent=etree.SubElement(base, _sum("RegistroFactura")))

    logger.debug("Built envelope with %d record(s) for %s", len(records), taxpayer.nif)
    return envelope


def serialize_envelope(envelope: etree._Element) -> bytes:
    """Serialize an envelope as UTF-8 bytes with an XML declaration."""
    return etree.tostring(envelope, xml_declaration=True, encoding="utf-8")
