"""Management-plane queries through the Citrix Broker PowerShell snap-in."""
from __future__ import annotations

import logging
from typing import Optional

from .models import ConfigAccessFailure, QueryFailureKind, QueryResult
from .powershell import PSResult, extract_json, ps_quote

logger = logging.getLogger("scout.site_query")

BROKER_SNAPIN = "Citrix.Broker.Admin.V2"
LOCAL_SURFACE = "local management plane"

ACCESS_PROBE_SCRIPT = r"""
$ErrorActionPreference = 'Stop'
$out = [ordered]@{ Status = 'ok'; Message = '' }
try {
  $null = Get-Item -LiteralPath 'HKLM:\SOFTWARE'
} catch [System.UnauthorizedAccessException], [System.Security.SecurityException] {
  $out.Status = 'access_denied'
  $out.Message = $_.Exception.Message
}
[pscustomobject]$out | ConvertTo-Json -Compress
"""

SITE_QUERY_TEMPLATE = r"""
$ErrorActionPreference = 'Stop'
$out = [ordered]@{{ Status = 'ok'; SiteName = ''; Message = '' }}
try {{
  if (-not (Get-PSSnapin -Name {snapin} -ErrorAction SilentlyContinue)) {{
    Add-PSSnapin -Name {snapin}
  }}
  $params = @{{}}
  $address = {address}
  if ($address) {{ $params['AdminAddress'] = $address }}
  $site = Get-BrokerSite @params
  if ($site -and $site.Name) {{
    $out.SiteName = [string]$site.Name
  }} else {{
    $out.Status = 'no_site'
  }}
}} catch {{
  $out.Status = 'error'
  $out.Message = $_.Exception.Message
}}
[pscustomobject]$out | ConvertTo-Json -Compress
"""

UNREACHABLE_HINTS = (
    "no endpoint listening",
    "could not connect",
    "unable to connect",
    "connection refused",
    "actively refused",
    "unreachable",
    "no such host",
    "name or service not known",
    "could not be resolved",
    "remote name could not be resolved",
    "failed to establish",
)


def classify_error(message: str) -> QueryFailureKind:
    """Map a Broker SDK error message to a failure kind, for logging only."""
    lowered = (message or "").lower()
    if "timed out" in lowered or "timeout" in lowered:
        return QueryFailureKind.TIMEOUT
    if any(hint in lowered for hint in UNREACHABLE_HINTS):
        return QueryFailureKind.UNREACHABLE
    return QueryFailureKind.COMMUNICATION


class BrokerSiteQueryClient:
    """Asks a Delivery Controller for its site name via Get-BrokerSite.

    Never raises: every outcome comes back as a QueryResult. Each call is a
    single attempt bounded by ``timeout`` seconds.
    """

    def __init__(self, runner, timeout: int = 30):
        self.runner = runner
        self.timeout = timeout

    def check_local_access(self) -> Optional[ConfigAccessFailure]:
        """Return a failure if this host's local read surface is unusable."""
        res = self.runner.run(ACCESS_PROBE_SCRIPT, timeout=self.timeout)
        if res.timed_out or res.error:
            return ConfigAccessFailure(location=LOCAL_SURFACE, message=res.error or "timed out")
        payload = extract_json(res.stdout)
        if payload is None:
            detail = (res.stderr or f"exit code {res.exit_code}").strip()[:200]
            return ConfigAccessFailure(location=LOCAL_SURFACE, message=detail)
        if str(payload.get("Status") or "").lower() != "ok":
            return ConfigAccessFailure(location=LOCAL_SURFACE, message=str(payload.get("Message") or "access denied"))
        return None

    def query(self, remote_address: Optional[str] = None) -> QueryResult:
        address = (remote_address or "").strip() or None
        script = SITE_QUERY_TEMPLATE.format(
            snapin=ps_quote(BROKER_SNAPIN),
            address=ps_quote(address or ""),
        )
        res = self.runner.run(script, timeout=self.timeout)
        result = self._interpret(res, address)
        target = address or "local"
        if result.ok:
            logger.info("Get-BrokerSite (%s) returned site %r", target, result.site_name)
        else:
            logger.warning(
                "Get-BrokerSite (%s) failed [%s]: %s",
                target,
                result.failure.kind.value,
                result.failure.message,
            )
        return result

    @staticmethod
    def _interpret(res: PSResult, address: Optional[str]) -> QueryResult:
        if res.timed_out:
            return QueryResult.failed(QueryFailureKind.TIMEOUT, res.error or "timed out", address)
        if res.error:
            return QueryResult.failed(classify_error(res.error), res.error, address)

        payload = extract_json(res.stdout)
        if payload is None:
            detail = (res.stderr or f"exit code {res.exit_code}, no parsable output").strip()[:200]
            return QueryResult.failed(QueryFailureKind.COMMUNICATION, detail, address)

        status = str(payload.get("Status") or "").lower()
        site_name = str(payload.get("SiteName") or "").strip()
        if status == "ok" and site_name:
            return QueryResult.success(site_name)
        if status in ("ok", "no_site"):
            return QueryResult.failed(QueryFailureKind.NO_SITE, "no site reported", address)
        message = str(payload.get("Message") or "unknown error")[:200]
        return QueryResult.failed(classify_error(message), message, address)
