import ipaddress
import json
import logging
import socket
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from .bundle import BundleNamer
from .config import Config
from .config_store import RegistryConfigStore
from .powershell import build_runner, extract_json
from .preflight import check_broker_snapin, check_service_running, validate_output_dir
from .resolver import IdentityResolver
from .site_query import BrokerSiteQueryClient

logger = logging.getLogger("scout.runner")

COMPUTER_NAME_SCRIPT = "[pscustomobject]@{ ComputerName = $env:COMPUTERNAME } | ConvertTo-Json -Compress"


def short_host_name(target: str) -> str:
    """First label of a DNS name; IP addresses are kept whole."""
    target = target.strip()
    try:
        ipaddress.ip_address(target.strip("[]"))
        return target
    except ValueError:
        return target.split(".")[0]


class Runner:
    def __init__(self, config: Config, ps_runner=None, clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.ps_runner = ps_runner or build_runner(config)
        self.clock = clock or (lambda: datetime.now())
        self.run_id = f"{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:6]}"
        self.site_client = BrokerSiteQueryClient(self.ps_runner, timeout=config.query_timeout)
        self.config_store = RegistryConfigStore(self.ps_runner)
        self.resolver = IdentityResolver(self.site_client, self.config_store)
        self.namer = BundleNamer()
        self.report: Dict[str, Any] = {
            "run_id": self.run_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "config": {
                "target_host": self.config.target_host or "local",
                "user": self.config.username,
                "query_timeout": self.config.query_timeout,
                "skip_preflight": self.config.skip_preflight,
                "service_name": self.config.service_name,
            },
            "pre_flight": {},
            "resolution": {},
            "summary": {"bundle_name": "", "duration_sec": 0},
        }

    def execute(self) -> Dict[str, Any]:
        start = time.time()
        validate_output_dir(self.config.out_dir)

        if self.config.skip_preflight:
            logger.info("Skipping pre-flight checks")
        else:
            self.report["pre_flight"] = {
                "broker_snapin_registered": check_broker_snapin(self.ps_runner),
                "service_running": check_service_running(self.ps_runner, self.config.service_name),
            }

        identity, trace = self.resolver.resolve_with_trace()
        host_name = self._computer_name()
        bundle_name = self.namer.format(identity, identity.role, host_name, self.clock())
        logger.info("Role=%s Site=%r Host=%s", identity.role.value, identity.site_name, host_name)

        self.report["resolution"] = {
            "role": identity.role.value,
            "site_name": identity.site_name,
            "host_name": host_name,
            "steps": [s.as_dict() for s in trace],
        }
        duration = round(time.time() - start, 2)
        self.report["summary"] = {"bundle_name": bundle_name, "duration_sec": duration}

        if self.config.write_report:
            self._write_report()
        logger.info("Finished in %ss. Bundle name: %s", duration, bundle_name)
        return self.report

    def _computer_name(self) -> str:
        res = self.ps_runner.run(COMPUTER_NAME_SCRIPT)
        payload = extract_json(res.stdout) if res.ok else None
        name = str(payload.get("ComputerName") or "").strip() if payload else ""
        if name:
            return name
        if not getattr(self.ps_runner, "remote", False):
            return socket.gethostname().split(".")[0]
        logger.warning("Could not read computer name from %s; using the target address", self.config.target_host)
        return short_host_name(self.config.target_host)

    def _write_report(self) -> None:
        path = self.config.report_path
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.report, f, indent=2)
        logger.info("Report written to %s", path)
