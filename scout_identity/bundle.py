"""Diagnostic bundle naming."""
from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from .models import HostRole, SiteIdentity

BUNDLE_SUFFIX = "ScoutData"
TIMESTAMP_FORMAT = "%Y-%m-%d_%H%M"
ROLE_TAGS = {
    HostRole.CONTROLLER: "DDC",
    HostRole.AGENT: "VDA",
    HostRole.UNKNOWN: "VDA",
}

_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_component(value: str) -> str:
    """Replace characters Windows does not allow in file names."""
    return _INVALID_FILENAME_CHARS.sub("_", value.strip())


def role_tag(role: HostRole) -> str:
    return ROLE_TAGS.get(role, "VDA")


def format_bundle_name(
    identity: SiteIdentity,
    host_name: str,
    timestamp: datetime,
    role: Optional[HostRole] = None,
) -> str:
    """Build ``<site>_<DDC|VDA>_<host>_<yyyy-MM-dd_HHmm>_ScoutData``."""
    if not isinstance(timestamp, datetime):
        raise TypeError(f"timestamp must be a datetime, got {type(timestamp).__name__}")
    host = sanitize_component(host_name or "")
    if not host:
        raise ValueError("host_name must not be empty")
    site = sanitize_component(identity.site_name)
    tag = role_tag(role if role is not None else identity.role)
    return f"{site}_{tag}_{host}_{timestamp.strftime(TIMESTAMP_FORMAT)}_{BUNDLE_SUFFIX}"


class BundleNamer:
    def format(self, identity: SiteIdentity, role: HostRole, host_name: str, timestamp: datetime) -> str:
        return format_bundle_name(identity, host_name, timestamp, role=role)
