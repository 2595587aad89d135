import json
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional, Union

DEFAULT_POLL_DURATION = timedelta(seconds=5)
DEFAULT_WAIT_DURATION = timedelta(minutes=10)

_ISO_DURATION = re.compile(
    r"^P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)
_TRUE = {"true", "yes", "y", "1", "on"}
_FALSE = {"false", "no", "n", "0", "off", ""}


def _validate_parameters(params: dict):
    """
    Validates that none of the required parameters are None, empty strings, or empty lists/dicts.

    :param params: Dictionary of parameters to validate
    :raises ValueError: If any parameter is missing or invalid
    """
    missing = []
    for key, value in params.items():
        if value is None:
            missing.append(key)
        elif isinstance(value, str) and not value.strip():
            missing.append(key)
        elif isinstance(value, (list, dict)) and not value:
            missing.append(key)

    if missing:
        raise ValueError(f"Missing or empty required parameters: {', '.join(missing)}")


def parse_duration(value: Union[str, int, float, timedelta]) -> timedelta:
    """
    Parses a duration given as a timedelta, a number of seconds or an ISO-8601 string.

    >>> parse_duration("PT5S")
    datetime.timedelta(seconds=5)
    >>> parse_duration("90")
    datetime.timedelta(seconds=90)
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    text = str(value).strip()
    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass

    match = _ISO_DURATION.match(text)
    if not match or text.upper() in ("P", "PT") or text.upper().endswith("T"):
        raise ValueError(f"Invalid duration: {value!r}")
    parts = {name: float(amount) for name, amount in match.groupdict().items() if amount is not None}
    return timedelta(**parts)


def parse_bool(value: Union[str, bool, None]) -> bool:
    if isinstance(value, bool):
        return value
    text = (value or "").strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"Invalid boolean: {value!r}")


def _parse_json_object(raw: Optional[str], name: str) -> Optional[dict]:
    if raw is None or not raw.strip():
        return None
    options = json.loads(raw)
    if not isinstance(options, dict):
        raise ValueError(f"{name} must be a JSON object")
    return options


@dataclass
class RefreshConfig:
    tenant_id: str
    client_id: str
    client_secret: str = field(repr=False)
    group_id: str
    dataset_id: str
    wait: bool = False
    poll_duration: timedelta = DEFAULT_POLL_DURATION
    wait_duration: timedelta = DEFAULT_WAIT_DURATION
    refresh_options: Optional[dict] = None

    def __post_init__(self):
        _validate_parameters({
            "tenant_id": self.tenant_id,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "group_id": self.group_id,
            "dataset_id": self.dataset_id,
        })
        self.wait = parse_bool(self.wait)
        self.poll_duration = parse_duration(self.poll_duration)
        self.wait_duration = parse_duration(self.wait_duration)
        if self.poll_duration <= timedelta(0):
            raise ValueError("poll_duration must be positive")
        if self.wait_duration <= timedelta(0):
            raise ValueError("wait_duration must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None, **overrides: Any) -> "RefreshConfig":
        """
        Builds a configuration from PBI_* environment variables.

        Keyword overrides that are not None take precedence over the environment.
        """
        env = os.environ if environ is None else environ
        values = {
            "tenant_id": env.get("PBI_TENANT_ID"),
            "client_id": env.get("PBI_CLIENT_ID"),
            "client_secret": env.get("PBI_CLIENT_SECRET"),
            "group_id": env.get("PBI_GROUP_ID") or env.get("PBI_WORKSPACE_ID"),
            "dataset_id": env.get("PBI_DATASET_ID"),
            "wait": env.get("PBI_WAIT", "false"),
            "poll_duration": env.get("PBI_POLL_DURATION", DEFAULT_POLL_DURATION),
            "wait_duration": env.get("PBI_WAIT_DURATION", DEFAULT_WAIT_DURATION),
            "refresh_options": _parse_json_object(env.get("PBI_REFRESH_OPTIONS"), "PBI_REFRESH_OPTIONS"),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    @classmethod
    def from_widgets(cls, dbutils) -> "RefreshConfig":
        """
        Builds a configuration from Databricks job widgets and a secret scope.

        Credentials are stored as secrets; the widgets only name their keys.
        """
        def widget(name: str, default: Optional[str] = None) -> Optional[str]:
            try:
                return dbutils.widgets.get(name)
            except Exception:
                # dbutils raises a py4j error for undefined widgets
                if default is None:
                    raise
                return default

        scope = widget("scope")
        refresh_objects_raw = widget("refresh_objects", "")

        refresh_options = None
        if refresh_objects_raw.strip():
            refresh_objects = json.loads(refresh_objects_raw)
            if not isinstance(refresh_objects, list):
                raise ValueError("refresh_objects must be a JSON list of objects")
            refresh_options = {
                "type": "Full",
                "commitMode": "transactional",
                "objects": refresh_objects,
            }

        return cls(
            tenant_id=dbutils.secrets.get(scope=scope, key=widget("tenant_id_key")),
            client_id=dbutils.secrets.get(scope=scope, key=widget("client_id_key")),
            client_secret=dbutils.secrets.get(scope=scope, key=widget("client_secret_key")),
            group_id=widget("workspace_id"),
            dataset_id=widget("dataset_id"),
            wait=widget("wait", "true"),
            poll_duration=widget("poll_interval", "5"),
            wait_duration=widget("wait_timeout", "600"),
            refresh_options=refresh_options,
        )
