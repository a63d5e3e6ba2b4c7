from __future__ import annotations

from datetime import date

import pytest
from lxml import etree

from verifactu.models.responses import ItemStatus, RecordType, ResponseStatus
from verifactu.services.exceptions import AeatResponseError, InvalidModelError
from verifactu.services.response_parser import parse_response

_NAMESPACES = (
    'xmlns:env="http://schemas.xmlsoap.org/soap/envelope/" '
    'xmlns:tikR="https://www2.agenciatributaria.gob.es/static_files/common/internet/dep/aplicaciones/es/aeat/tike/cont/ws/RespuestaSuministro.xsd" '
    'xmlns:tik="https://www2.agenciatributaria.gob.es/static_files/common/internet/dep/aplicaciones/es/aeat/tike/cont/ws/SuministroInformacion.xsd"'
)


def _line(number: str, issue_date: str, operation: str, status: str, extra: str = "") -> str:
    return f"""
        <tikR:RespuestaLinea>
            <tikR:IDFactura>
                <tik:IDEmisorFactura>A00000000</tik:IDEmisorFactura>
                <tik:NumSerieFactura>{number}</tik:NumSerieFactura>
                <tik:FechaExpedicionFactura>{issue_date}</tik:FechaExpedicionFactura>
            </tikR:IDFactura>
            <tikR:Operacion>{operation}</tikR:Operacion>
            <tikR:EstadoRegistro>{status}</tikR:EstadoRegistro>
            {extra}
        </tikR:RespuestaLinea>"""


def _envelope(body: str) -> bytes:
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<env:Envelope {_NAMESPACES}>
    <env:Header/>
    <env:Body Id="Body">
        <tikR:RespuestaRegFactuSistemaFacturacion>
            <tikR:Cabecera>
                <tik:ObligadoEmision>
                    <tik:NombreRazon>Perico de los Palotes, S.A.</tik:NombreRazon>
                    <tik:NIF>A00000000</tik:NIF>
                </tik:ObligadoEmision>
            </tikR:Cabecera>
            {body}
        </tikR:RespuestaRegFactuSistemaFacturacion>
    </env:Body>
</env:Envelope>""".encode()


CORRECT_RESPONSE = _envelope(
    """
    <tikR:CSV>A-86U4KHPACUMVZE</tikR:CSV>
    <tikR:DatosPresentacion>
        <tik:NIFPresentador>A00000000</tik:NIFPresentador>
        <tik:TimestampPresentacion>2025-10-13T12:34:56+02:00</tik:TimestampPresentacion>
    </tikR:DatosPresentacion>
    <tikR:TiempoEsperaEnvio>60</tikR:TiempoEsperaEnvio>
    <tikR:EstadoEnvio>Correcto</tikR:EstadoEnvio>
    """
    + _line(
        "TEST-202510-123",
        "13-10-2025",
        "<tik:TipoOperacion>Alta</tik:TipoOperacion><tik:Subsanacion>S</tik:Subsanacion>",
        "Correcto",
    )
    + _line(
        "TEST-202510-124",
        "13-10-2025",
        "<tik:TipoOperacion>Alta</tik:TipoOperacion><tik:Subsanacion>N</tik:Subsanacion>",
        "Correcto",
    )
    + _line(
        "TEST-202510-120",
        "11-10-2025",
        "<tik:TipoOperacion>Anulacion</tik:TipoOperacion><tik:Subsanacion>N</tik:Subsanacion>",
        "Correcto",
    )
)

INCORRECT_RESPONSE = _envelope(
    """
    <tikR:TiempoEsperaEnvio>60</tikR:TiempoEsperaEnvio>
    <tikR:EstadoEnvio>Incorrecto</tikR:EstadoEnvio>
    """
    + _line(
        "NO-EXISTE",
        "11-10-2025",
        "<tik:TipoOperacion>Anulacion</tik:TipoOperacion>",
        "Incorrecto",
        "<tikR:CodigoErrorRegistro>3002</tikR:CodigoErrorRegistro>"
        "<tikR:DescripcionErrorRegistro>No existe el registro de facturación.</tikR:DescripcionErrorRegistro>",
    )
)

FAULT_RESPONSE = b"""<?xml version="1.0" encoding="UTF-8"?>
<env:Envelope xmlns:env="http://schemas.xmlsoap.org/soap/envelope/">
    <env:Body>
        <env:Fault>
            <faultcode>env:Server</faultcode>
            <faultstring>Codigo[20009].Error interno en el servidor</faultstring>
        </env:Fault>
    </env:Body>
</env:Envelope>"""


class TestCorrectResponse:
    def test_summary(self):
        response = parse_response(CORRECT_RESPONSE)
        assert response.csv == "A-86U4KHPACUMVZE"
        assert response.submitted_at.isoformat() == "2025-10-13T12:34:56+02:00"
        assert response.wait_seconds == 60
        assert response.status is ResponseStatus.CORRECT
        assert len(response.items) == 3

    def test_items(self):
        items = parse_response(CORRECT_RESPONSE).items

        assert items[0].is_correction is True
        assert items[0].invoice_id.issuer_id == "A00000000"
        assert items[0].invoice_id.invoice_number == "TEST-202510-123"
        assert items[0].invoice_id.issue_date == date(2025, 10, 13)
        assert items[0].record_type is RecordType.REGISTRATION
        assert items[0].status is ItemStatus.CORRECT
        assert items[0].error_code is None
        assert items[0].error_description is None

        assert items[1].is_correction is False
        assert items[1].invoice_id.invoice_number == "TEST-202510-124"

        assert items[2].invoice_id.invoice_number == "TEST-202510-120"
        assert items[2].record_type is RecordType.CANCELLATION

    def test_accepts_parsed_element(self):
        response = parse_response(etree.fromstring(CORRECT_RESPONSE))
        assert response.csv == "A-86U4KHPACUMVZE"


def test_incorrect_response():
    response = parse_response(INCORRECT_RESPONSE)
    assert response.csv is None
    assert response.submitted_at is None
    assert response.wait_seconds == 60
    assert response.status is ResponseStatus.INCORRECT
    assert len(response.items) == 1

    item = response.items[0]
    assert item.is_correction is False
    assert item.invoice_id.invoice_number == "NO-EXISTE"
    assert item.record_type is RecordType.CANCELLATION
    assert item.status is ItemStatus.INCORRECT
    assert item.error_code == "3002"
    assert item.error_description == "No existe el registro de facturación."


def test_server_fault():
    with pytest.raises(AeatResponseError, match=r"Codigo\[20009\]\.Error interno en el servidor") as exc_info:
        parse_response(FAULT_RESPONSE)
    assert "faultcode" in exc_info.value.response


def test_missing_body():
    data = b'<env:Envelope xmlns:env="http://schemas.xmlsoap.org/soap/envelope/"><env:Body/></env:Envelope>'
    with pytest.raises(AeatResponseError, match="RespuestaRegFactuSistemaFacturacion"):
        parse_response(data)


def test_malformed_xml():
    with pytest.raises(AeatResponseError, match="Malformed"):
        parse_response(b"<html>Service Unavailable")


def test_unknown_status():
    data = _envelope(
        "<tikR:TiempoEsperaEnvio>60</tikR:TiempoEsperaEnvio><tikR:EstadoEnvio>Quizas</tikR:EstadoEnvio>"
    )
    with pytest.raises(AeatResponseError, match="Quizas"):
        parse_response(data)


def test_invalid_timestamp():
    data = _envelope(
        "<tikR:DatosPresentacion><tik:TimestampPresentacion>13/10/2025</tik:TimestampPresentacion></tikR:DatosPresentacion>"
        "<tikR:TiempoEsperaEnvio>60</tikR:TiempoEsperaEnvio><tikR:EstadoEnvio>Correcto</tikR:EstadoEnvio>"
    )
    with pytest.raises(AeatResponseError, match="submitted at"):
        parse_response(data)


def test_missing_wait_time_fails_validation():
    data = _envelope("<tikR:EstadoEnvio>Correcto</tikR:EstadoEnvio>")
    with pytest.raises(InvalidModelError) as exc_info:
        parse_response(data)
    assert [v.path for v in exc_info.value.violations] == ["wait_seconds"]
