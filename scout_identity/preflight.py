"""Environment checks run before identity resolution."""
from __future__ import annotations

import logging
import uuid
from pathlib import Path

from .powershell import extract_json, ps_quote
from .site_query import BROKER_SNAPIN

logger = logging.getLogger("scout.preflight")

DEFAULT_SERVICE_NAME = "CitrixTelemetryService"

SNAPIN_CHECK_TEMPLATE = r"""
$found = [bool](Get-PSSnapin -Registered -Name {snapin} -ErrorAction SilentlyContinue)
[pscustomobject]@{{ Registered = $found }} | ConvertTo-Json -Compress
"""

SERVICE_CHECK_TEMPLATE = r"""
$svc = Get-Service -Name {name} -ErrorAction SilentlyContinue
$status = if ($svc) {{ [string]$svc.Status }} else {{ 'NotInstalled' }}
[pscustomobject]@{{ Status = $status }} | ConvertTo-Json -Compress
"""


class PreflightError(RuntimeError):
    """Raised when the environment cannot support a run."""


def validate_output_dir(path: Path) -> Path:
    """Create the output directory if needed and make sure it is writable."""
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise PreflightError(f"Cannot create output directory {path}: {exc}") from exc
    if not path.is_dir():
        raise PreflightError(f"Output path {path} is not a directory")
    probe = path / f".scout_write_probe_{uuid.uuid4().hex[:8]}"
    try:
        probe.write_text("ok", encoding="utf-8")
        probe.unlink()
    except OSError as exc:
        raise PreflightError(f"Output directory {path} is not writable: {exc}") from exc
    return path


def check_broker_snapin(runner) -> bool:
    res = runner.run(SNAPIN_CHECK_TEMPLATE.format(snapin=ps_quote(BROKER_SNAPIN)))
    payload = extract_json(res.stdout) if res.ok else None
    registered = bool(payload and payload.get("Registered"))
    if registered:
        logger.info("%s snap-in is registered", BROKER_SNAPIN)
    else:
        logger.info("%s snap-in not registered; host is probably not a Delivery Controller", BROKER_SNAPIN)
    return registered


def check_service_running(runner, name: str = DEFAULT_SERVICE_NAME) -> bool:
    res = runner.run(SERVICE_CHECK_TEMPLATE.format(name=ps_quote(name)))
    payload = extract_json(res.stdout) if res.ok else None
    status = str(payload.get("Status")) if payload else "Unknown"
    if status == "Running":
        logger.info("Service %s is running", name)
        return True
    logger.warning("Service %s is not running (status: %s)", name, status)
    return False
