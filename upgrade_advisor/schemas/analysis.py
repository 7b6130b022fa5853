"""
Request and result types passed between the advisor's layers.

AnalysisSubject is what the caller hands in. ProviderRequest is built fresh by
an adapter for every call. ProviderResult (Ok | Err) is what adapters and the
transport hand back to the dispatcher; it is only turned into user-facing text
at the dispatcher boundary.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from .base import ErrorKind

MAX_NAME_LENGTH = 100
MAX_VERSION_LENGTH = 50

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def _clean(value: Any, limit: int) -> str:
    if value is None:
        return ""
    text = _CONTROL_CHARS.sub("", str(value)).strip()
    return text[:limit]


class AnalysisSubject(BaseModel):
    """One upgrade candidate: display name, package id, current and available version."""

    model_config = ConfigDict(frozen=True)

    name: str
    package_id: str
    current_version: str = ""
    available_version: str = ""

    @field_validator("name", "package_id", mode="before")
    @classmethod
    def clean_identifier(cls, v):
        return _clean(v, MAX_NAME_LENGTH)

    @field_validator("current_version", "available_version", mode="before")
    @classmethod
    def clean_version(cls, v):
        return _clean(v, MAX_VERSION_LENGTH)

    @property
    def display_name(self) -> str:
        return self.name or self.package_id


# Signs a request just before it is sent: (method, url, body bytes) -> headers
AuthHook = Callable[[str, str, bytes], Dict[str, str]]


@dataclass
class ProviderRequest:
    """A single outbound provider call. Headers are local to this request."""

    method: str
    url: str
    body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    auth: Optional[AuthHook] = None

    @property
    def content(self) -> bytes:
        if self.body is None:
            return b""
        return json.dumps(self.body).encode("utf-8")

    def build_headers(self) -> Dict[str, str]:
        """Static headers plus freshly computed auth headers for this attempt."""
        headers = dict(self.headers)
        if self.body is not None:
            headers.setdefault("Content-Type", "application/json")
        if self.auth is not None:
            headers.update(self.auth(self.method, self.url, self.content))
        return headers


@dataclass(frozen=True)
class Ok:
    text: str
    provider: str


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    provider: str
    detail: str = ""
    status_code: Optional[int] = None
    attempts: int = 0

    @property
    def reached_network(self) -> bool:
        return self.kind != ErrorKind.NOT_CONFIGURED


ProviderResult = Union[Ok, Err]
