"""Read-only access to the VDA registration records kept in the registry."""
from __future__ import annotations

import logging
from typing import Any, Dict

from .models import ConfigAccessFailure, DirectRegistration, MirroredRegistration, RecordRead
from .powershell import extract_json, ps_quote

logger = logging.getLogger("scout.config_store")

VDA_REGISTRATION_KEY = r"HKLM:\SOFTWARE\Citrix\VirtualDesktopAgent"
VDA_REGISTRATION_VALUE = "ListOfDDCs"
IDENTITY_MIRROR_KEY = r"HKLM:\SOFTWARE\Citrix\VirtualDesktopAgent\State"
IDENTITY_MIRROR_VALUE = "RegisteredDdcFqdn"

READ_VALUE_TEMPLATE = r"""
$ErrorActionPreference = 'Stop'
$path = {path}
$name = {name}
$out = [ordered]@{{ Status = 'absent'; Value = $null; Message = '' }}
try {{
  if (Test-Path -LiteralPath $path) {{
    $item = Get-ItemProperty -LiteralPath $path
    $prop = $item.PSObject.Properties[$name]
    if ($null -ne $prop) {{
      $out.Status = 'found'
      $out.Value = $prop.Value
    }}
  }}
}} catch [System.UnauthorizedAccessException], [System.Security.SecurityException] {{
  $out.Status = 'access_denied'
  $out.Message = $_.Exception.Message
}} catch {{
  $out.Status = 'error'
  $out.Message = $_.Exception.Message
}}
[pscustomobject]$out | ConvertTo-Json -Compress -Depth 3
"""


class RegistryConfigStore:
    """Reads the direct registration and identity mirror records.

    Each read is an independent snapshot; nothing is cached or written.
    """

    def __init__(self, runner):
        self.runner = runner

    def read_direct_registration(self) -> RecordRead:
        read = self._read_value(VDA_REGISTRATION_KEY, VDA_REGISTRATION_VALUE)
        if read.get("failure"):
            return RecordRead(access_failure=read["failure"])
        if read["status"] != "found":
            return RecordRead()
        return RecordRead(record=DirectRegistration.from_value(read["value"]))

    def read_mirrored_registration(self) -> RecordRead:
        read = self._read_value(IDENTITY_MIRROR_KEY, IDENTITY_MIRROR_VALUE)
        if read.get("failure"):
            return RecordRead(access_failure=read["failure"])
        if read["status"] != "found":
            return RecordRead()
        value = read["value"]
        if isinstance(value, list):
            value = next((str(v) for v in value if v), None)
        address = str(value) if value is not None else None
        return RecordRead(record=MirroredRegistration(registered_controller_address=address))

    def _read_value(self, path: str, name: str) -> Dict[str, Any]:
        location = f"{path}\\{name}"
        script = READ_VALUE_TEMPLATE.format(path=ps_quote(path), name=ps_quote(name))
        res = self.runner.run(script)

        if res.timed_out or res.error:
            message = res.error or "timed out"
            logger.warning("Could not read %s: %s", location, message)
            return {"failure": ConfigAccessFailure(location=location, message=message)}

        payload = extract_json(res.stdout)
        if payload is None:
            message = (res.stderr or f"exit code {res.exit_code}, no parsable output").strip()[:200]
            logger.warning("Could not read %s: %s", location, message)
            return {"failure": ConfigAccessFailure(location=location, message=message)}

        status = str(payload.get("Status") or "").lower()
        if status in ("access_denied", "error"):
            message = str(payload.get("Message") or status)[:200]
            logger.warning("Could not read %s (%s): %s", location, status, message)
            return {"failure": ConfigAccessFailure(location=location, message=message)}

        logger.debug("Read %s: %s", location, status or "absent")
        return {"status": status or "absent", "value": payload.get("Value")}
