from __future__ import annotations

from scout_identity.config_store import (
    IDENTITY_MIRROR_VALUE,
    VDA_REGISTRATION_VALUE,
    RegistryConfigStore,
)
from scout_identity.models import DirectRegistration, MirroredRegistration
from scout_identity.powershell import PSResult


def test_direct_registration_found(fake_ps):
    fake_ps.on_json(VDA_REGISTRATION_VALUE, {"Status": "found", "Value": "ddc1.example.com ddc2.example.com", "Message": ""})
    store = RegistryConfigStore(fake_ps)

    read = store.read_direct_registration()

    assert read.found
    assert read.access_failure is None
    assert read.record == DirectRegistration(("ddc1.example.com", "ddc2.example.com"))
    assert read.record.first_candidate() == "ddc1.example.com"


def test_direct_registration_single_space_is_empty(fake_ps):
    fake_ps.on_json(VDA_REGISTRATION_VALUE, {"Status": "found", "Value": " ", "Message": ""})

    read = RegistryConfigStore(fake_ps).read_direct_registration()

    assert read.found
    assert read.record.list_of_controllers == ()
    assert read.record.first_candidate() is None


def test_direct_registration_multi_string(fake_ps):
    fake_ps.on_json(VDA_REGISTRATION_VALUE, {"Status": "found", "Value": ["", " ddcA ", "ddcB"], "Message": ""})

    read = RegistryConfigStore(fake_ps).read_direct_registration()

    assert read.record.list_of_controllers == ("ddcA", "ddcB")


def test_direct_registration_absent(fake_ps):
    fake_ps.on_json(VDA_REGISTRATION_VALUE, {"Status": "absent", "Value": None, "Message": ""})

    read = RegistryConfigStore(fake_ps).read_direct_registration()

    assert not read.found
    assert read.access_failure is None


def test_access_denied_is_not_absent(fake_ps):
    fake_ps.on_json(VDA_REGISTRATION_VALUE, {"Status": "access_denied", "Value": None, "Message": "Requested registry access is not allowed."})

    read = RegistryConfigStore(fake_ps).read_direct_registration()

    assert not read.found
    assert read.access_failure is not None
    assert "not allowed" in read.access_failure.message
    assert read.access_failure.location.endswith(VDA_REGISTRATION_VALUE)


def test_runner_error_is_access_failure(fake_ps):
    fake_ps.on(IDENTITY_MIRROR_VALUE, PSResult("localhost", -1, "", "", error="[WinError 5] Access is denied"))

    read = RegistryConfigStore(fake_ps).read_mirrored_registration()

    assert read.access_failure is not None
    assert "Access is denied" in read.access_failure.message


def test_unparsable_output_is_access_failure(fake_ps):
    fake_ps.on(IDENTITY_MIRROR_VALUE, PSResult("localhost", 1, "", "The term 'Get-ItemProperty' is not recognized"))

    read = RegistryConfigStore(fake_ps).read_mirrored_registration()

    assert read.access_failure is not None


def test_mirrored_registration_found(fake_ps):
    fake_ps.on_json(IDENTITY_MIRROR_VALUE, {"Status": "found", "Value": "ddc3.example.com", "Message": ""})

    read = RegistryConfigStore(fake_ps).read_mirrored_registration()

    assert read.record == MirroredRegistration("ddc3.example.com")
    assert read.record.candidate() == "ddc3.example.com"


def test_mirrored_registration_empty_value(fake_ps):
    fake_ps.on_json(IDENTITY_MIRROR_VALUE, {"Status": "found", "Value": "", "Message": ""})

    read = RegistryConfigStore(fake_ps).read_mirrored_registration()

    assert read.found
    assert read.record.candidate() is None


def test_script_quotes_registry_path(fake_ps):
    fake_ps.on_json(VDA_REGISTRATION_VALUE, {"Status": "absent"})

    RegistryConfigStore(fake_ps).read_direct_registration()

    script = fake_ps.scripts[0]
    assert r"'HKLM:\SOFTWARE\Citrix\VirtualDesktopAgent'" in script
    assert "'ListOfDDCs'" in script


def test_powershell_error_status_is_access_failure(fake_ps):
    fake_ps.on_json(VDA_REGISTRATION_VALUE, {"Status": "error", "Value": None, "Message": "The registry key is corrupt."})

    read = RegistryConfigStore(fake_ps).read_direct_registration()

    assert not read.found
    assert read.access_failure is not None
    assert read.access_failure.message == "The registry key is corrupt."


def test_mirrored_registration_list_value_uses_first_entry(fake_ps):
    fake_ps.on_json(IDENTITY_MIRROR_VALUE, {"Status": "found", "Value": ["", "ddc3.example.com", "ddc4.example.com"], "Message": ""})

    read = RegistryConfigStore(fake_ps).read_mirrored_registration()

    assert read.record == MirroredRegistration("ddc3.example.com")
    assert read.record.candidate() == "ddc3.example.com"
