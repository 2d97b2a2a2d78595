from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class EquipmentConfig(BaseModel):
    """Tunables shared by equipment resolution and the state machine."""

    scan_timeout: float = Field(default=10.0, gt=0.0)
    poll_interval: float = Field(default=0.5, gt=0.0)
    connect_timeout: float = Field(default=15.0, gt=0.0)
    read_timeout: float = Field(default=0.0, ge=0.0)
    rssi_threshold: int | None = Field(default=None, le=0)
    name_filter: str | None = None

    @model_validator(mode="after")
    def validate_intervals(self) -> EquipmentConfig:
        """Ensure the scan window fits at least one polling interval."""
        if self.poll_interval > self.scan_timeout:
            msg = f"poll_interval ({self.poll_interval}) > scan_timeout ({self.scan_timeout})"
            raise ValueError(msg)
        return self
