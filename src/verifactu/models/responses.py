from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from verifactu.models.identifiers import InvoiceIdentifier


class ResponseStatus(StrEnum):
    """EstadoEnvio: overall submission status."""

    CORRECT = "Correcto"
    PARTIALLY_CORRECT = "ParcialmenteCorrecto"
    INCORRECT = "Incorrecto"


class ItemStatus(StrEnum):
    """EstadoRegistro: status of a single record."""

    CORRECT = "Correcto"
    ACCEPTED_WITH_ERRORS = "AceptadoConErrores"
    INCORRECT = "Incorrecto"


class RecordType(StrEnum):
    """TipoOperacion echoed back per record."""

    REGISTRATION = "Alta"
    CANCELLATION = "Anulacion"


@dataclass(frozen=True)
class ResponseItem:
    """RespuestaLinea."""

    invoice_id: InvoiceIdentifier
    record_type: RecordType | None
    status: ItemStatus | None
    is_correction: bool = False
    error_code: str | None = None
    error_description: str | None = None


@dataclass(frozen=True)
class AeatResponse:
    """Parsed RespuestaRegFactuSistemaFacturacion.

    ``csv`` and ``submitted_at`` are only present when the submission was
    not rejected as a whole. ``wait_seconds`` is the delay the sender must
    respect before its next submission.
    """

    wait_seconds: int | None
    status: ResponseStatus | None
    csv: str | None = None
    submitted_at: datetime | None = None
    items: tuple[ResponseItem, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))
