"""Queue payloads for report delivery.

Only the report identifier crosses the queue; the job loads the current
record when it runs. ``schema_version`` is required so the contract can evolve.
"""

from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from bookkeeping.core.errors import InvalidInput

CURRENT_SCHEMA_VERSION = "v1"


class MonthlyReportDeliveryPayload(BaseModel):
    """Payload of the monthly report delivery task."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    schema_version: Literal["v1"] = CURRENT_SCHEMA_VERSION
    report_id: int

    @classmethod
    def parse(cls, data: Any) -> "MonthlyReportDeliveryPayload":
        """Validate a payload dict (or pass an instance through). Raises InvalidInput."""
        if isinstance(data, cls):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidInput(f"Invalid delivery payload: {e.errors()}") from e

    def to_message(self) -> Dict[str, Any]:
        """JSON-serializable form for the broker."""
        return self.model_dump()
