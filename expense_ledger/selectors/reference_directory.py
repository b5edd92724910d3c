"""
Reference directory -- read-only lookups into external registries.

Customers, suppliers and shipments live in other systems.  The ledger only
needs display names for list views and id sets for name/code filters, so it
depends on the small ``ReferenceDirectory`` protocol.  The in-memory
implementation is the default and what tests use.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Counterparty:
    unit_type: str
    unit_id: str
    name: str
    full_name: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.full_name


@dataclass(frozen=True)
class ShipmentInfo:
    shipment_id: str
    code: str
    bl_number: str = ""


class ReferenceDirectory(Protocol):
    def counterparty_name(self, unit_type: str, unit_id: str) -> str:
        """Display name, or "" when the counterparty is unknown."""
        ...

    def find_counterparties(self, name: str) -> set[tuple[str, str]]:
        """(unit_type, unit_id) pairs whose name contains ``name``."""
        ...

    def shipment_info(self, shipment_id: str) -> ShipmentInfo | None:
        ...

    def find_shipments(
        self, code: str | None = None, bl_number: str | None = None
    ) -> set[str]:
        """Ids of shipments matching every given substring."""
        ...


class InMemoryReferenceDirectory:
    """Dictionary-backed ReferenceDirectory."""

    def __init__(self) -> None:
        self._counterparties: dict[tuple[str, str], Counterparty] = {}
        self._shipments: dict[str, ShipmentInfo] = {}

    def add_customer(self, unit_id: str, name: str) -> Counterparty:
        party = Counterparty("customer", unit_id, name)
        self._counterparties[(party.unit_type, unit_id)] = party
        return party

    def add_supplier(self, unit_id: str, name: str, full_name: str = "") -> Counterparty:
        party = Counterparty("supplier", unit_id, name, full_name)
        self._counterparties[(party.unit_type, unit_id)] = party
        return party

    def add_shipment(self, shipment_id: str, code: str, bl_number: str = "") -> ShipmentInfo:
        info = ShipmentInfo(shipment_id, code, bl_number)
        self._shipments[shipment_id] = info
        return info

    def counterparty_name(self, unit_type: str, unit_id: str) -> str:
        party = self._counterparties.get((unit_type, unit_id))
        return party.display_name if party else ""

    def find_counterparties(self, name: str) -> set[tuple[str, str]]:
        needle = name.lower()
        return {
            key
            for key, party in self._counterparties.items()
            if needle in party.name.lower() or needle in party.full_name.lower()
        }

    def shipment_info(self, shipment_id: str) -> ShipmentInfo | None:
        return self._shipments.get(shipment_id)

    def find_shipments(
        self, code: str | None = None, bl_number: str | None = None
    ) -> set[str]:
        matches = set(self._shipments)
        if code:
            matches &= {sid for sid, s in self._shipments.items() if code in s.code}
        if bl_number:
            matches &= {
                sid for sid, s in self._shipments.items() if bl_number in s.bl_number
            }
        return matches
