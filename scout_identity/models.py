"""Data types shared by the identity resolver and its collaborators."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union

SITE_AGENT_PLACEHOLDER = "VDA"
SITE_UNKNOWN_PLACEHOLDER = "Unable to determine"


class HostRole(str, Enum):
    CONTROLLER = "Controller"
    AGENT = "Agent"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class SiteIdentity:
    site_name: str
    role: HostRole

    def __post_init__(self) -> None:
        if not self.site_name or not self.site_name.strip():
            raise ValueError("site_name must not be empty")

    @classmethod
    def controller(cls, site_name: str) -> "SiteIdentity":
        return cls(site_name=site_name, role=HostRole.CONTROLLER)

    @classmethod
    def agent(cls, site_name: str = SITE_AGENT_PLACEHOLDER) -> "SiteIdentity":
        return cls(site_name=site_name, role=HostRole.AGENT)

    @classmethod
    def unknown(cls) -> "SiteIdentity":
        return cls(site_name=SITE_UNKNOWN_PLACEHOLDER, role=HostRole.UNKNOWN)


def _normalize_controllers(raw: Union[str, List[str], None]) -> List[str]:
    """Split ListOfDDCs into entries and drop whitespace-only ones.

    A single space is what an emptied REG_SZ value commonly holds, so it must
    come out as an empty list rather than one blank candidate.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        parts = raw.split(" ")
    else:
        parts = []
        for item in raw:
            if item is None:
                continue
            parts.extend(str(item).split(" "))
    return [p.strip() for p in parts if p and p.strip()]


@dataclass(frozen=True)
class DirectRegistration:
    """Controllers the VDA was manually pointed at (ListOfDDCs)."""

    list_of_controllers: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "list_of_controllers", tuple(_normalize_controllers(list(self.list_of_controllers))))

    @classmethod
    def from_value(cls, raw: Union[str, List[str], None]) -> "DirectRegistration":
        return cls(list_of_controllers=tuple(_normalize_controllers(raw)))

    def first_candidate(self) -> Optional[str]:
        return self.list_of_controllers[0] if self.list_of_controllers else None


@dataclass(frozen=True)
class MirroredRegistration:
    """Controller the VDA auto-registered with."""

    registered_controller_address: Optional[str] = None

    def candidate(self) -> Optional[str]:
        address = (self.registered_controller_address or "").strip()
        return address or None


class QueryFailureKind(str, Enum):
    UNREACHABLE = "unreachable"
    NO_SITE = "no_site"
    TIMEOUT = "timeout"
    COMMUNICATION = "communication"


@dataclass(frozen=True)
class QueryFailure:
    kind: QueryFailureKind
    message: str = ""
    address: Optional[str] = None


@dataclass(frozen=True)
class QueryResult:
    site_name: Optional[str] = None
    failure: Optional[QueryFailure] = None

    @property
    def ok(self) -> bool:
        return bool(self.site_name and self.site_name.strip()) and self.failure is None

    @classmethod
    def success(cls, site_name: Optional[str], address: Optional[str] = None) -> "QueryResult":
        name = (site_name or "").strip()
        if not name:
            return cls.failed(QueryFailureKind.NO_SITE, "no site reported", address)
        return cls(site_name=name)

    @classmethod
    def failed(cls, kind: QueryFailureKind, message: str = "", address: Optional[str] = None) -> "QueryResult":
        return cls(failure=QueryFailure(kind=kind, message=message, address=address))


@dataclass(frozen=True)
class ConfigAccessFailure:
    location: str
    message: str = ""


@dataclass(frozen=True)
class RecordRead:
    record: Union[DirectRegistration, MirroredRegistration, None] = None
    access_failure: Optional[ConfigAccessFailure] = None

    @property
    def found(self) -> bool:
        return self.record is not None


@dataclass
class ResolutionStep:
    step: int
    action: str
    outcome: str
    detail: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {"step": self.step, "action": self.action, "outcome": self.outcome, **self.detail}
