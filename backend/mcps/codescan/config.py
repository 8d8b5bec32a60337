from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


DEFAULT_GITLAB_URL = "https://gitlab.com/api/v4"
DEFAULT_MAX_WORKERS = 8
MAX_WORKERS_LIMIT = 16
DEFAULT_REQUEST_TIMEOUT_SECONDS = 20.0
DEFAULT_MAX_FILE_BYTES = 2 * 1024 * 1024
DEFAULT_RULE_TIMEOUT_SECONDS = 2.0

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass
class ScanConfig:
    """Settings shared by the scan engine, the GitLab client and the API."""

    gitlab_url: str = DEFAULT_GITLAB_URL
    max_workers: int = DEFAULT_MAX_WORKERS
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    rule_timeout: float = DEFAULT_RULE_TIMEOUT_SECONDS
    report_all_matches: bool = False
    redact_matches: bool = True

    def __post_init__(self) -> None:
        self.gitlab_url = (self.gitlab_url or DEFAULT_GITLAB_URL).rstrip("/")
        self.max_workers = min(max(int(self.max_workers), 1), MAX_WORKERS_LIMIT)
        if self.request_timeout <= 0:
            self.request_timeout = DEFAULT_REQUEST_TIMEOUT_SECONDS
        if self.max_file_bytes <= 0:
            self.max_file_bytes = DEFAULT_MAX_FILE_BYTES
        if self.rule_timeout <= 0:
            self.rule_timeout = DEFAULT_RULE_TIMEOUT_SECONDS

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ScanConfig":
        if not data:
            return cls()
        return cls(
            gitlab_url=str(data.get("gitlab_url") or DEFAULT_GITLAB_URL).strip(),
            max_workers=_as_int(data.get("max_workers"), DEFAULT_MAX_WORKERS),
            request_timeout=_as_float(data.get("request_timeout"), DEFAULT_REQUEST_TIMEOUT_SECONDS),
            max_file_bytes=_as_int(data.get("max_file_bytes"), DEFAULT_MAX_FILE_BYTES),
            rule_timeout=_as_float(data.get("rule_timeout"), DEFAULT_RULE_TIMEOUT_SECONDS),
            report_all_matches=_as_bool(data.get("report_all_matches"), False),
            redact_matches=_as_bool(data.get("redact_matches"), True),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ScanConfig":
        """
        Build settings from environment variables.

        Recognised variables: GITLAB_URL, LEAKSCAN_MAX_WORKERS,
        LEAKSCAN_REQUEST_TIMEOUT, LEAKSCAN_MAX_FILE_BYTES, LEAKSCAN_RULE_TIMEOUT,
        LEAKSCAN_REPORT_ALL_MATCHES, LEAKSCAN_REDACT_MATCHES.
        Unparseable values fall back to the defaults.
        """
        env = os.environ if environ is None else environ
        return cls.from_dict(
            {
                "gitlab_url": env.get("GITLAB_URL"),
                "max_workers": env.get("LEAKSCAN_MAX_WORKERS"),
                "request_timeout": env.get("LEAKSCAN_REQUEST_TIMEOUT"),
                "max_file_bytes": env.get("LEAKSCAN_MAX_FILE_BYTES"),
                "rule_timeout": env.get("LEAKSCAN_RULE_TIMEOUT"),
                "report_all_matches": env.get("LEAKSCAN_REPORT_ALL_MATCHES"),
                "redact_matches": env.get("LEAKSCAN_REDACT_MATCHES"),
            }
        )


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    raw = str(value or "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default
