from __future__ import annotations

from dataclasses import dataclass, field

from verifactu.models.codes import OperationType, RegimeType, TaxType


@dataclass(frozen=True)
class BreakdownDetails:
    """DetalleDesglose: one tax line of an invoice.

    Amounts and rates are kept as their wire strings (``"21.00"``,
    ``"-10.50"``). Which optional pairs must be present depends on
    ``operation_type`` (tax rate/amount) and ``regime_type`` (surcharge).

    ``exempt_reason_code`` and ``exempt_reason`` are local annotations for
    exempt lines. DetalleDesglose has no element for them, so they are not
    written to documents and take no part in equality.
    """

    tax_type: TaxType
    regime_type: RegimeType
    operation_type: OperationType
    base_amount: str
    tax_rate: str | None = None
    tax_amount: str | None = None
    surcharge_rate: str | None = None
    surcharge_amount: str | None = None
    exempt_reason_code: str | None = field(default=None, compare=False)
    exempt_reason: str | None = field(default=None, compare=False)
