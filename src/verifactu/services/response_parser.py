from __future__ import annotations

import logging
from enum import Enum
from typing import TypeVar

from lxml import etree

from verifactu.config import RESPONSE_NS, SOAPENV_NS, SUM1_NS
from verifactu.models.identifiers import InvoiceIdentifier
from verifactu.models.responses import (
    AeatResponse,
    ItemStatus,
    RecordType,
    ResponseItem,
    ResponseStatus,
)
from verifactu.services.exceptions import AeatResponseError
from verifactu.services.validation import ensure_valid
from verifactu.utils.formatters import parse_date, parse_timestamp

logger = logging.getLogger(__name__)

_NS = {"env": SOAPENV_NS, "r": RESPONSE_NS, "s": SUM1_NS}

E = TypeVar("E", bound=Enum)


def _enum(enum_cls: type[E], raw: str | None, raw_response: str) -> E | None:
    if raw is None:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        raise AeatResponseError(f"Unknown {enum_cls.__name__} value: {raw}", raw_response) from None


def _parse_item(el: etree._Element, raw_response: str) -> ResponseItem:
    def txt(xpath: str) -> str | None:
        return el.findtext(xpath, namespaces=_NS)

    raw_issue_date = txt("r:IDFactura/s:FechaExpedicionFactura")
    issue_date = None
    if raw_issue_date is not None:
        try:
            issue_date = parse_date(raw_issue_date)
        except ValueError:
            raise AeatResponseError(f"Invalid invoice issue date: {raw_issue_date}", raw_response) from None

    return ResponseItem(
        invoice_id=InvoiceIdentifier(
            issuer_id=txt("r:IDFactura/s:IDEmisorFactura"),
            invoice_number=txt("r:IDFactura/s:NumSerieFactura"),
            issue_date=issue_date,
        ),
        record_type=_enum(RecordType, txt("r:Operacion/s:TipoOperacion"), raw_response),
        status=_enum(ItemStatus, txt("r:EstadoRegistro"), raw_response),
        is_correction=txt("r:Operacion/s:Subsanacion") == "S",
        error_code=txt("r:CodigoErrorRegistro"),
        error_description=txt("r:DescripcionErrorRegistro"),
    )


def parse_response(xml: bytes | str | etree._Element) -> AeatResponse:
    """Parse the agency's answer to a RegFactuSistemaFacturacion submission.

    Raises AeatResponseError for SOAP faults and malformed documents, and
    InvalidModelError when the parsed response lacks its status or wait time.
    """
    if isinstance(xml, etree._Element):
        root = xml
        raw = etree.tostring(xml, encoding="unicode")
    else:
        data = xml.encode("utf-8") if isinstance(xml, str) else xml
        raw = data.decode("utf-8", errors="replace")
        try:
            root = etree.fromstring(data)
        except etree.XMLSyntaxError as exc:
            raise AeatResponseError(f"Malformed response document: {exc}", raw) from exc

    fault = root.findtext("env:Body/env:Fault/faultstring", namespaces=_NS)
    if fault is not None:
        logger.warning("AEAT returned a SOAP fault: %s", fault)
        raise AeatResponseError(fault, raw)

    body = root.find("env:Body/r:RespuestaRegFactuSistemaFacturacion", namespaces=_NS)
    if body is None:
        raise AeatResponseError(
            "Missing <tikR:RespuestaRegFactuSistemaFacturacion /> element from response", raw
        )

    def txt(xpath: str) -> str | None:
        return body.findtext(xpath, namespaces=_NS)

    submitted_at = None
    raw_submitted_at = txt("r:DatosPresentacion/s:TimestampPresentacion")
    if raw_submitted_at is not None:
        try:
            submitted_at = parse_timestamp(raw_submitted_at)
        except ValueError:
            raise AeatResponseError(f"Invalid submitted at date: {raw_submitted_at}", raw) from None

    wait_seconds = None
    raw_wait = txt("r:TiempoEsperaEnvio")
    if raw_wait is not None:
        try:
            wait_seconds = int(raw_wait)
        except ValueError:
            raise AeatResponseError(f"Invalid wait time: {raw_wait}", raw) from None

    response = AeatResponse(
        wait_seconds=wait_seconds,
        status=_enum(ResponseStatus, txt("r:EstadoEnvio"), raw),
        csv=txt("r:CSV"),
        submitted_at=submitted_at,
        items=[_parse_item(el, raw) for el in body.iterfind("r:RespuestaLinea", namespaces=_NS)],
    )
    ensure_valid(response)
    logger.debug("Parsed response %s with %d item(s)", response.status, len(response.items))
    return response
