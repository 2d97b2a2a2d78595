from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class EquipmentIdentity:
    """Logical equipment type plus the parameters used to discover it."""

    type_tag: str
    name_filter: str | None = None
    rssi_threshold: int | None = None
    service_uuid: str | None = None
    scan_timeout: float = 10.0

    def matches(
        self,
        name: str | None,
        rssi: int | None,
        service_uuids: Iterable[str] = (),
    ) -> bool:
        """Return True if an advertisement satisfies every discovery filter."""
        if self.name_filter is not None:
            if not name or self.name_filter.lower() not in name.lower():
                return False
        if self.rssi_threshold is not None:
            if rssi is None or rssi < self.rssi_threshold:
                return False
        if self.service_uuid is not None:
            wanted = self.service_uuid.lower()
            if wanted not in {uuid.lower() for uuid in service_uuids}:
                return False
        return True
