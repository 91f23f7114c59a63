import os
from pathlib import Path

import pytest

from scout_identity.config import DEFAULT_QUERY_TIMEOUT, load_config

ENV_KEYS = (
    "SCOUT_TARGET_HOST",
    "SCOUT_WINRM_USER",
    "SCOUT_WINRM_PASSWORD",
    "SCOUT_WINRM_PORT",
    "SCOUT_QUERY_TIMEOUT",
    "SCOUT_OUT_DIR",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    # load_dotenv writes straight into os.environ
    for key in ENV_KEYS:
        os.environ.pop(key, None)


def test_defaults_are_local_mode():
    cfg = load_config([])

    assert cfg.target_host is None
    assert cfg.query_timeout == DEFAULT_QUERY_TIMEOUT
    assert cfg.winrm_port == 5985
    assert cfg.verify_ssl
    assert cfg.out_dir == Path("./out")
    assert cfg.report_path == Path("./out") / "scout_identity_report.json"
    assert cfg.write_report
    assert cfg.service_name == "CitrixTelemetryService"


def test_flags_override_environment(monkeypatch):
    monkeypatch.setenv("SCOUT_TARGET_HOST", "env-host")
    monkeypatch.setenv("SCOUT_QUERY_TIMEOUT", "45")

    cfg = load_config(["--target-host", "ddc01", "--query-timeout", "10", "--insecure", "--no-report"])

    assert cfg.target_host == "ddc01"
    assert cfg.query_timeout == 10
    assert not cfg.verify_ssl
    assert not cfg.write_report


def test_environment_is_used_when_flags_absent(monkeypatch):
    monkeypatch.setenv("SCOUT_TARGET_HOST", " vda07 ")
    monkeypatch.setenv("SCOUT_WINRM_USER", "CORP\\scout")
    monkeypatch.setenv("SCOUT_WINRM_PORT", "5986")
    monkeypatch.setenv("SCOUT_QUERY_TIMEOUT", "not-a-number")

    cfg = load_config([])

    assert cfg.target_host == "vda07"
    assert cfg.username == "CORP\\scout"
    assert cfg.winrm_port == 5986
    assert cfg.query_timeout == DEFAULT_QUERY_TIMEOUT


def test_env_file_is_loaded(tmp_path):
    env_file = tmp_path / "scout.env"
    env_file.write_text("SCOUT_WINRM_PASSWORD=from-file\nSCOUT_OUT_DIR=bundles\n", encoding="utf-8")

    cfg = load_config(["--env-file", str(env_file)])

    assert cfg.password == "from-file"
    assert cfg.out_dir == Path("bundles")


def test_query_timeout_has_a_floor():
    cfg = load_config(["--query-timeout", "0"])

    assert cfg.query_timeout == 1
