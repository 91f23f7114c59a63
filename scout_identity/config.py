import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .preflight import DEFAULT_SERVICE_NAME

logger = logging.getLogger("scout.config")

DEFAULT_ENV_PATH = Path(".env")
DEFAULT_QUERY_TIMEOUT = 30
MIN_QUERY_TIMEOUT = 1


@dataclass
class Config:
    # Target
    target_host: Optional[str]

    # WinRM settings
    username: str
    password: str
    winrm_port: int
    winrm_transport: str
    winrm_scheme: str
    verify_ssl: bool

    # Resolution
    query_timeout: int

    # Output
    out_dir: Path
    report_path: Path
    write_report: bool

    # Checks
    service_name: str
    skip_preflight: bool

    debug: bool


def _as_int(value: Optional[str], default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid int %r, using default=%s", value, default)
        return default


def load_config(argv: Optional[List[str]] = None) -> Config:
    parser = argparse.ArgumentParser(description="Resolve the Citrix site identity of a host and name its Scout bundle")

    # Target args
    parser.add_argument("--target-host", help="Resolve a remote host over WinRM instead of this machine")
    parser.add_argument("--username", help="WinRM Username")
    parser.add_argument("--password", help="WinRM Password")

    # WinRM config
    parser.add_argument("--winrm-port", type=int, help="WinRM Port (default 5985)")
    parser.add_argument("--winrm-transport", default="ntlm", choices=["ntlm", "kerberos", "basic", "credssp"], help="WinRM Transport")
    parser.add_argument("--winrm-scheme", default="http", choices=["http", "https"], help="WinRM Scheme")
    parser.add_argument("--insecure", action="store_true", help="Ignore SSL cert validation")

    # Resolution
    parser.add_argument("--query-timeout", type=int, help=f"Timeout (sec) per Get-BrokerSite call (default {DEFAULT_QUERY_TIMEOUT})")

    # Output
    parser.add_argument("--out-dir", help="Output directory (default ./out)")
    parser.add_argument("--no-report", action="store_true", help="Do not write the JSON run report")

    # Checks
    parser.add_argument("--service-name", default=DEFAULT_SERVICE_NAME, help="Collection service expected to be running")
    parser.add_argument("--skip-preflight", action="store_true", help="Skip snap-in and service checks")

    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--env-file", help="Path to .env file")

    args = parser.parse_args(argv)

    # Load Env
    env_path = Path(args.env_file) if args.env_file else DEFAULT_ENV_PATH
    if env_path.exists():
        load_dotenv(env_path)

    target_host = (args.target_host or os.getenv("SCOUT_TARGET_HOST") or "").strip() or None
    username = args.username or os.getenv("SCOUT_WINRM_USER") or ""
    password = args.password or os.getenv("SCOUT_WINRM_PASSWORD") or ""
    winrm_port = args.winrm_port or _as_int(os.getenv("SCOUT_WINRM_PORT"), 5985)

    query_timeout = args.query_timeout
    if query_timeout is None:
        query_timeout = _as_int(os.getenv("SCOUT_QUERY_TIMEOUT"), DEFAULT_QUERY_TIMEOUT)
    if query_timeout < MIN_QUERY_TIMEOUT:
        logger.warning("query timeout %s is below minimum %s; using %s", query_timeout, MIN_QUERY_TIMEOUT, MIN_QUERY_TIMEOUT)
        query_timeout = MIN_QUERY_TIMEOUT

    out_dir = Path(args.out_dir or os.getenv("SCOUT_OUT_DIR") or "./out")

    return Config(
        target_host=target_host,
        username=username,
        password=password,
        winrm_port=winrm_port,
        winrm_transport=args.winrm_transport,
        winrm_scheme=args.winrm_scheme,
        verify_ssl=not args.insecure,
        query_timeout=query_timeout,
        out_dir=out_dir,
        report_path=out_dir / "scout_identity_report.json",
        write_report=not args.no_report,
        service_name=args.service_name,
        skip_preflight=args.skip_preflight,
        debug=args.debug,
    )
