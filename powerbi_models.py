from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from powerbi_errors import ProtocolError

IN_PROGRESS_STATUS = "Unknown"
COMPLETED_STATUS = "completed"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise ProtocolError(f"Invalid timestamp in refresh history: {value!r}") from e


@dataclass(frozen=True)
class Credentials:
    """Service principal used for the client-credentials token exchange."""
    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)

    def __post_init__(self):
        missing = [name for name in ("tenant_id", "client_id", "client_secret")
                   if not isinstance(getattr(self, name), str) or not getattr(self, name).strip()]
        if missing:
            raise ValueError(f"Missing or empty credentials: {', '.join(missing)}")


@dataclass(frozen=True)
class RefreshRecord:
    """One entry of a dataset's refresh history, as returned by Power BI."""
    request_id: str
    status: str = IN_PROGRESS_STATUS
    extended_status: Optional[str] = None
    refresh_type: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefreshRecord":
        if not isinstance(data, dict):
            raise ProtocolError(f"Refresh entry is not an object: {data!r}")
        return cls(
            request_id=data.get("requestId"),
            status=data.get("status") or IN_PROGRESS_STATUS,
            extended_status=data.get("extendedStatus"),
            refresh_type=data.get("refreshType"),
            start_time=_parse_timestamp(data.get("startTime")),
            end_time=_parse_timestamp(data.get("endTime")),
        )

    @property
    def in_progress(self) -> bool:
        return self.status == IN_PROGRESS_STATUS

    @property
    def succeeded(self) -> bool:
        return self.status.lower() == COMPLETED_STATUS


def parse_refreshes(payload: Any) -> List[RefreshRecord]:
    """
    Normalizes a refresh history body into a list of records.

    Power BI documents an ``{"value": [...]}`` envelope, but a bare list is
    accepted as well.

    :param payload: Decoded JSON body of the refresh history endpoint
    :return: List of RefreshRecord in service order
    :raises ProtocolError: If the body has any other shape
    """
    if payload is None:
        return []
    if isinstance(payload, dict):
        if "value" not in payload:
            raise ProtocolError(f"Refresh history has no 'value' field: {payload!r}")
        payload = payload["value"] or []
    if not isinstance(payload, list):
        raise ProtocolError(f"Unexpected refresh history payload: {payload!r}")
    return [RefreshRecord.from_dict(item) for item in payload]


@dataclass
class RefreshOutput:
    request_id: str
    status: Optional[str] = None
    extended_status: Optional[str] = None
    refresh_type: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @classmethod
    def from_record(cls, request_id: str, record: RefreshRecord) -> "RefreshOutput":
        return cls(
            request_id=request_id,
            status=record.status,
            extended_status=record.extended_status,
            refresh_type=record.refresh_type,
            start_time=record.start_time,
            end_time=record.end_time,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Returns the output with camelCase keys, omitting fields that were not populated."""
        values = {
            "requestId": self.request_id,
            "status": self.status,
            "extendedStatus": self.extended_status,
            "refreshType": self.refresh_type,
            "startTime": self.start_time.isoformat() if self.start_time else None,
            "endTime": self.end_time.isoformat() if self.end_time else None,
        }
        return {key: value for key, value in values.items() if value is not None}
