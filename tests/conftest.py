from __future__ import annotations

import json

import pytest

from scout_identity.powershell import PSResult


class FakePowerShell:
    """Answers scripts by the first registered marker found in the script text."""

    remote = False
    host = "localhost"

    def __init__(self):
        self.routes = []
        self.scripts = []

    def on(self, marker, result):
        self.routes.append((marker, result))
        return self

    def on_json(self, marker, payload, exit_code=0):
        return self.on(marker, PSResult(self.host, exit_code, json.dumps(payload), ""))

    def run(self, script, timeout=None):
        self.scripts.append(script)
        for marker, result in self.routes:
            if marker in script:
                return result(script) if callable(result) else result
        return PSResult(self.host, 1, "", "no route for script")


@pytest.fixture
def fake_ps():
    return FakePowerShell()
