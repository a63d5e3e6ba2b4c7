from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ComputerSystem:
    """SistemaInformatico: the billing software that produces the records."""

    vendor_name: str
    vendor_nif: str
    name: str
    id: str
    version: str
    installation_number: str
    only_supports_verifactu: bool = True
    supports_multiple_taxpayers: bool = False
    has_multiple_taxpayers: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> ComputerSystem:
        """Create a ComputerSystem from a YAML-loaded dict, applying defaults for flags."""
        return cls(
            vendor_name=d["vendor_name"],
            vendor_nif=str(d["vendor_nif"]),
            name=d["name"],
            id=str(d["id"]),
            version=str(d["version"]),
            installation_number=str(d["installation_number"]),
            only_supports_verifactu=bool(d.get("only_supports_verifactu", True)),
            supports_multiple_taxpayers=bool(d.get("supports_multiple_taxpayers", False)),
            has_multiple_taxpayers=bool(d.get("has_multiple_taxpayers", False)),
        )
