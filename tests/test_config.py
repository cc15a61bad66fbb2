import json
from pathlib import Path

import pytest

from agcoats.config import (
    ConfigStore,
    DEFAULT_BASE_URL,
    DEFAULT_SERVICES_URL,
    SERVICES_FAMILY,
    default_config_path,
)


@pytest.fixture
def config_path(tmp_path) -> Path:
    return tmp_path / ".ktmcp" / "agcoats.json"


def test_default_path_is_under_home(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    assert default_config_path() == tmp_path / ".ktmcp" / "agcoats.json"
    assert ConfigStore().path == tmp_path / ".ktmcp" / "agcoats.json"


def test_missing_file_is_default_config(config_path):
    """No file on disk is a valid state, not an error."""
    store = ConfigStore(config_path)
    assert store.get() == {"baseUrl": DEFAULT_BASE_URL, "servicesUrl": DEFAULT_SERVICES_URL}
    assert store.get("token") is None
    assert store.get("apiKey") is None
    assert not config_path.exists()


def test_set_creates_directory_and_file(config_path):
    store = ConfigStore(config_path)
    store.set("apiKey", "key-123")

    assert config_path.exists()
    assert json.loads(config_path.read_text()) == {"apiKey": "key-123"}
    assert store.get("apiKey") == "key-123"


def test_set_then_get_preserves_untouched_keys(config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text(json.dumps({"apiKey": "old-key", "baseUrl": "https://example.test", "custom": "x"}))

    store = ConfigStore(config_path)
    store.set("token", "tok-1")
    store.set("apiKey", "new-key")

    assert store.get() == {
        "apiKey": "new-key",
        "token": "tok-1",
        "baseUrl": "https://example.test",
        "servicesUrl": DEFAULT_SERVICES_URL,
        "custom": "x",
    }
    # A fresh store sees the same record on disk
    assert ConfigStore(config_path).get("token") == "tok-1"


def test_update_deep_merges_nested_values(config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text(json.dumps({"profile": {"region": "eu", "units": "metric"}}))

    store = ConfigStore(config_path)
    record = store.update({"profile": {"units": "imperial"}, "token": None})

    assert record == {"profile": {"region": "eu", "units": "imperial"}}
    assert "token" not in json.loads(config_path.read_text())


def test_update_rereads_file_before_writing(config_path):
    """Keys written by someone else after our first read survive our write."""
    store = ConfigStore(config_path)
    assert store.get("token") is None  # cache the empty record

    config_path.parent.mkdir(parents=True)
    config_path.write_text(json.dumps({"token": "external"}))

    store.set("apiKey", "k")
    assert json.loads(config_path.read_text()) == {"token": "external", "apiKey": "k"}


def test_get_is_cached_until_reload(config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text(json.dumps({"token": "first"}))
    store = ConfigStore(config_path)
    assert store.get("token") == "first"

    config_path.write_text(json.dumps({"token": "second"}))
    assert store.get("token") == "first"
    store.reload()
    assert store.get("token") == "second"


@pytest.mark.parametrize("content", ["this is not json", "[1, 2, 3]", '{"token": 42}'])
def test_corrupt_file_is_swallowed(config_path, content, caplog):
    config_path.parent.mkdir(parents=True)
    config_path.write_text(content)

    store = ConfigStore(config_path)
    assert store.get("token") is None
    assert store.get("baseUrl") == DEFAULT_BASE_URL
    assert str(config_path) in caplog.text


def test_empty_file_is_default(config_path):
    config_path.parent.mkdir(parents=True)
    config_path.write_text("   ")
    assert ConfigStore(config_path).get("apiKey") is None


def test_is_configured_per_family(config_path):
    store = ConfigStore(config_path)
    assert not store.is_configured()
    assert not store.is_configured(SERVICES_FAMILY)

    store.set("apiKey", "key")
    assert store.is_configured()
    assert not store.is_configured(SERVICES_FAMILY)  # services API needs a session token

    store.set("token", "tok")
    assert store.is_configured()
    assert store.is_configured(SERVICES_FAMILY)
