"""PowerShell execution, either on this machine or on a remote host over WinRM."""
from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Optional

import winrm
from requests.exceptions import ReadTimeout, RequestException
from winrm.exceptions import WinRMOperationTimeoutError, WinRMTransportError

logger = logging.getLogger("scout.powershell")

LOCAL_HOST = "localhost"
READ_TIMEOUT_MARGIN_SEC = 30
UTF8_OUTPUT_PREFIX = "[Console]::OutputEncoding = [Text.Encoding]::UTF8\n"


@dataclass
class PSResult:
    host: str
    exit_code: int
    stdout: str
    stderr: str
    error: Optional[str] = None
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out and self.exit_code == 0


def ps_quote(value: str) -> str:
    """Return value as a single-quoted PowerShell string literal."""
    return "'" + str(value).replace("'", "''") + "'"


def decode_output(b: Optional[bytes]) -> str:
    """Decode PowerShell output, UTF-8 first and UTF-16-LE as fallback.

    Never raises: bytes that fit neither are replaced.
    """
    if not b:
        return ""
    try:
        return b.decode("utf-8")
    except UnicodeDecodeError:
        pass
    if b.startswith(b"\xff\xfe") or b"\x00" in b:
        return b.decode("utf-16-le", errors="replace")
    return b.decode("utf-8", errors="replace")


def extract_json(text: str) -> Optional[Dict[str, Any]]:
    """Return the first JSON object found in text, ignoring banners around it."""
    if not text:
        return None
    s = text.strip()
    try:
        obj = json.loads(s)
        return obj if isinstance(obj, dict) else None
    except ValueError:
        pass
    i = s.find("{")
    j = s.rfind("}")
    if i != -1 and j > i:
        try:
            obj = json.loads(s[i:j + 1])
            return obj if isinstance(obj, dict) else None
        except ValueError:
            return None
    return None


class LocalPowerShell:
    """Runs scripts with the local powershell.exe."""

    host = LOCAL_HOST
    remote = False

    def __init__(self, timeout: int = 30, executable: str = "powershell"):
        self.timeout = timeout
        self.executable = executable

    def run(self, script: str, timeout: Optional[int] = None) -> PSResult:
        args = [
            self.executable,
            "-NoProfile",
            "-NonInteractive",
            "-ExecutionPolicy",
            "Bypass",
            "-Command",
            UTF8_OUTPUT_PREFIX + script,
        ]
        limit = timeout or self.timeout
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                timeout=limit,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.debug("local PowerShell timed out after %ss", limit)
            return PSResult(self.host, -1, "", "", error=f"timed out after {limit}s", timed_out=True)
        except OSError as exc:
            logger.debug("local PowerShell could not start: %s", exc)
            return PSResult(self.host, -1, "", "", error=str(exc))
        return PSResult(
            host=self.host,
            exit_code=result.returncode,
            stdout=decode_output(result.stdout),
            stderr=decode_output(result.stderr),
        )


class WinRMPowerShell:
    """Runs scripts on a remote host through a pywinrm session."""

    remote = True

    def __init__(self, host: str, config):
        self.host = host
        self.config = config

    def _get_session(self, operation_timeout: Optional[int] = None) -> winrm.Session:
        op_timeout = max(1, int(operation_timeout or self.config.query_timeout))
        endpoint = f"{self.config.winrm_scheme}://{self.host}:{self.config.winrm_port}/wsman"
        return winrm.Session(
            target=endpoint,
            auth=(self.config.username, self.config.password),
            transport=self.config.winrm_transport,
            server_cert_validation="validate" if self.config.verify_ssl else "ignore",
            operation_timeout_sec=op_timeout,
            read_timeout_sec=op_timeout + READ_TIMEOUT_MARGIN_SEC,
        )

    def run(self, script: str, timeout: Optional[int] = None) -> PSResult:
        try:
            session = self._get_session(timeout)
            r = session.run_ps(UTF8_OUTPUT_PREFIX + script)
        except (WinRMOperationTimeoutError, ReadTimeout) as exc:
            return PSResult(self.host, -1, "", "", error=str(exc) or "timed out", timed_out=True)
        except (WinRMTransportError, RequestException) as exc:
            return PSResult(self.host, -1, "", "", error=str(exc))
        except Exception as exc:
            logger.debug("WinRM call to %s failed: %s", self.host, exc, exc_info=True)
            return PSResult(self.host, -1, "", "", error=str(exc))
        return PSResult(
            host=self.host,
            exit_code=r.status_code,
            stdout=decode_output(r.std_out),
            stderr=decode_output(r.std_err),
        )


def build_runner(config):
    """Pick the local or WinRM runner depending on whether a target host is set."""
    if config.target_host:
        logger.info(
            "Using WinRM %s://%s:%s (%s)",
            config.winrm_scheme,
            config.target_host,
            config.winrm_port,
            config.winrm_transport,
        )
        return WinRMPowerShell(config.target_host, config)
    return LocalPowerShell(timeout=config.query_timeout)
