from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from opsdeck.core.config import get_settings
from opsdeck.storage import (
    CachedStore,
    LocalBackend,
    LocalJsonStore,
    ObjectJsonStore,
    ObjectStorageBackend,
    WebDavBackend,
    WebDavJsonStore,
    backend_from_settings,
    build_store,
)

_ENV_KEYS = (
    "APP_ENV",
    "LOG_LEVEL",
    "DATA_BACKEND",
    "DATA_PATH",
    "WEBDAV_URL",
    "WEBDAV_USERNAME",
    "WEBDAV_PASSWORD",
    "WEBDAV_FILE_PATH",
    "S3_BUCKET",
    "S3_OBJECT_KEY",
    "S3_REGION",
    "S3_ENDPOINT_URL",
    "S3_ACCESS_KEY_ID",
    "S3_SECRET_ACCESS_KEY",
    "CACHE_ENABLED",
    "CACHE_PATH",
    "BACKGROUND_SYNC",
    "SYNC_INTERVAL_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
    "STRICT_DOCUMENTS",
)


@pytest.fixture
def env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()

    def settings(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, value)
        get_settings.cache_clear()
        return get_settings()

    yield settings
    get_settings.cache_clear()


def test_defaults(env):
    settings = env()

    assert settings.data_backend == "local"
    assert settings.data_path == "./data.json"
    assert settings.cache_enabled is True
    assert settings.background_sync is True
    assert settings.sync_interval_seconds == 300
    assert settings.http_timeout_seconds == 15.0
    assert settings.strict_documents is False
    assert settings.log_level == "INFO"


def test_env_parsing_and_fallbacks(env):
    settings = env(
        DATA_BACKEND="FTP",
        BACKGROUND_SYNC="off",
        SYNC_INTERVAL_SECONDS="soon",
        STRICT_DOCUMENTS="yes",
        WEBDAV_URL="https://dav.example/dav/",
    )

    assert settings.data_backend == "local"
    assert settings.background_sync is False
    assert settings.sync_interval_seconds == 300
    assert settings.strict_documents is True
    assert settings.webdav_url == "https://dav.example/dav"


def test_settings_are_cached(env):
    assert env() is get_settings()


def test_backend_variants(env):
    assert backend_from_settings(env(DATA_PATH="/srv/data.json")) == LocalBackend(path="/srv/data.json")

    webdav = backend_from_settings(env(DATA_BACKEND="webdav", WEBDAV_URL="https://dav.example", WEBDAV_USERNAME="me"))
    assert webdav == WebDavBackend(url="https://dav.example", file_path="/opsdeck/data.json", username="me")

    s3 = backend_from_settings(
        env(DATA_BACKEND="s3", S3_BUCKET="b", S3_ACCESS_KEY_ID="k", S3_SECRET_ACCESS_KEY="s", S3_REGION="eu-west-1")
    )
    assert s3 == ObjectStorageBackend(
        bucket="b", key="opsdeck/data.json", region="eu-west-1", access_key_id="k", secret_access_key="s"
    )


def test_missing_backend_settings_fail_at_startup(env):
    with pytest.raises(RuntimeError, match="WEBDAV_URL"):
        backend_from_settings(env(DATA_BACKEND="webdav"))
    with pytest.raises(RuntimeError, match="S3_ACCESS_KEY_ID/S3_SECRET_ACCESS_KEY"):
        backend_from_settings(env(DATA_BACKEND="s3", S3_BUCKET="b"))


def test_local_backend_is_never_cached(env, tmp_path):
    store = build_store(env(DATA_PATH=str(tmp_path / "data.json")))

    assert isinstance(store, LocalJsonStore)
    assert store.path == tmp_path / "data.json"


def test_remote_backend_is_wrapped_in_cache(env, tmp_path):
    settings = env(
        DATA_BACKEND="webdav",
        WEBDAV_URL="https://dav.example",
        CACHE_PATH=str(tmp_path / "cache.json"),
        SYNC_INTERVAL_SECONDS="30",
    )

    store = build_store(settings)
    try:
        assert isinstance(store, CachedStore)
        assert isinstance(store.remote, WebDavJsonStore)
        assert store.background_sync is True
        assert store.sync_interval == 30
        assert store.local.path == tmp_path / "cache.json"
    finally:
        store.remote.close()


def test_ephemeral_cache_moves_to_scratch_storage(env, tmp_path):
    settings = env(
        DATA_BACKEND="s3",
        S3_BUCKET="b",
        S3_REGION="us-east-1",
        S3_ACCESS_KEY_ID="k",
        S3_SECRET_ACCESS_KEY="s",
        BACKGROUND_SYNC="false",
        CACHE_PATH="cache.json",
    )

    store = build_store(settings)
    try:
        assert isinstance(store.remote, ObjectJsonStore)
        assert store.background_sync is False
        assert store.local.path.name == "cache.json"
        assert store.local.path != Path("cache.json")
    finally:
        store.remote.close()


def test_cache_can_be_disabled(env):
    store = build_store(env(DATA_BACKEND="webdav", WEBDAV_URL="https://dav.example", CACHE_ENABLED="0"))
    try:
        assert isinstance(store, WebDavJsonStore)
    finally:
        store.close()
