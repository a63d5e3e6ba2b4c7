from __future__ import annotations

from enum import StrEnum


class TaxType(StrEnum):
    """Impuesto."""

    IVA = "01"
    IPSI = "02"  # Ceuta y Melilla
    IGIC = "03"  # Canarias
    OTHER = "05"


class RegimeType(StrEnum):
    """ClaveRegimen: tax regime or operation with tax significance."""

    C01 = "01"  # General
    C02 = "02"  # Exportacion
    C03 = "03"  # Bienes usados, arte, antiguedades
    C04 = "04"  # Oro de inversion
    C05 = "05"  # Agencias de viajes
    C06 = "06"  # Grupo de entidades
    C07 = "07"  # Criterio de caja
    C08 = "08"  # IPSI / IGIC
    C09 = "09"  # Agencias de viaje, mediacion
    C10 = "10"  # Cobros por cuenta de terceros
    C11 = "11"  # Arrendamiento de local de negocio
    C14 = "14"  # IVA pendiente, certificaciones de obra publica
    C15 = "15"  # IVA pendiente, tracto sucesivo
    C17 = "17"  # OSS / IOSS
    C18 = "18"  # Recargo de equivalencia
    C19 = "19"  # REAGYP
    C20 = "20"  # Regimen simplificado

    @property
    def requires_surcharge(self) -> bool:
        """Whether lines under this regime must declare equivalence surcharge."""
        return self is RegimeType.C18


class OperationType(StrEnum):
    """CalificacionOperacion / OperacionExenta."""

    SUBJECT = "S1"
    PASSIVE_SUBJECT = "S2"  # inversion del sujeto pasivo
    NON_SUBJECT = "N1"
    NON_SUBJECT_BY_LOCATION = "N2"
    EXEMPT_ART_20 = "E1"
    EXEMPT_ART_21 = "E2"
    EXEMPT_ART_22 = "E3"
    EXEMPT_ART_23_24 = "E4"
    EXEMPT_ART_25 = "E5"
    EXEMPT_OTHER = "E6"

    @property
    def is_subject(self) -> bool:
        return self in (OperationType.SUBJECT, OperationType.PASSIVE_SUBJECT)

    @property
    def is_non_subject(self) -> bool:
        return self in (OperationType.NON_SUBJECT, OperationType.NON_SUBJECT_BY_LOCATION)

    @property
    def is_exempt(self) -> bool:
        return self.value.startswith("E")


class InvoiceType(StrEnum):
    """TipoFactura."""

    INVOICE = "F1"
    SIMPLIFIED = "F2"
    SUBSTITUTIVE = "F3"  # emitida en sustitucion de facturas simplificadas
    R1 = "R1"
    R2 = "R2"
    R3 = "R3"
    R4 = "R4"
    R5 = "R5"  # rectificativa de factura simplificada

    @property
    def is_simplified(self) -> bool:
        """Simplified invoices carry no recipients."""
        return self in (InvoiceType.SIMPLIFIED, InvoiceType.R5)

    @property
    def is_corrective(self) -> bool:
        return self.value.startswith("R")

    @property
    def is_substitutive(self) -> bool:
        return self is InvoiceType.SUBSTITUTIVE


class CorrectiveType(StrEnum):
    """TipoRectificativa."""

    SUBSTITUTION = "S"
    DIFFERENCES = "I"


class ForeignIdType(StrEnum):
    """IDType for parties identified outside the domestic tax registry."""

    VAT = "02"
    PASSPORT = "03"
    NATIONAL_ID = "04"
    RESIDENCE = "05"
    OTHER = "06"
    UNREGISTERED = "07"  # no censado; must be corrected later
