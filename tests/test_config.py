import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lockbroker.modules.config import ConfigModule, get_config, reset_config

CONFIG_ENV_VARS = [
    "STORAGE_BACKEND",
    "REDIS_HOST",
    "REDIS_PORT",
    "REDIS_DB",
    "REDIS_PASSWORD",
    "REDIS_KEY_PREFIX",
    "API_HOST",
    "API_PORT",
    "PORT",
    "LOG_LEVEL",
    "DEBUG",
    "WAIT_TIMEOUT",
    "POLL_INTERVAL",
    "RETENTION_SECONDS",
    "SWEEP_INTERVAL",
    "PROCESSING_TIMEOUT",
    "CLAIM_GUARD",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every config variable so defaults apply."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    """Test defaults match the reference service timings"""
    config = ConfigModule()

    assert config.get("storage_backend") == "memory"
    assert config.get("port") == 3000
    assert config.get("wait_timeout") == 60
    assert config.get("poll_interval") == 0.5
    assert config.get("retention_seconds") == 10
    assert config.get("processing_timeout") == 120
    assert config.get("claim_guard") is True
    assert config.get("redis_password") is None


def test_env_overrides(clean_env):
    clean_env.setenv("STORAGE_BACKEND", "REDIS")
    clean_env.setenv("REDIS_HOST", "redis.internal")
    clean_env.setenv("WAIT_TIMEOUT", "15")
    clean_env.setenv("CLAIM_GUARD", "false")
    clean_env.setenv("PORT", "8080")

    config = ConfigModule()

    assert config.get("storage_backend") == "redis"
    assert config.get("redis_host") == "redis.internal"
    assert config.get("wait_timeout") == 15.0
    assert config.get("claim_guard") is False
    assert config.get("port") == 8080


def test_api_port_takes_precedence(clean_env):
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("API_PORT", "9000")

    assert ConfigModule().get("port") == 9000


def test_redis_port_tcp_format(clean_env):
    """Test Kubernetes-style tcp://host:port values are parsed"""
    clean_env.setenv("REDIS_PORT", "tcp://10.0.0.12:6380")

    assert ConfigModule().get("redis_port") == 6380


def test_unknown_backend_rejected(clean_env):
    clean_env.setenv("STORAGE_BACKEND", "firestore")

    with pytest.raises(ValueError, match="Unsupported STORAGE_BACKEND"):
        ConfigModule()


def test_retention_must_exceed_poll_interval(clean_env):
    """Test a retention window a waiter could miss is rejected"""
    clean_env.setenv("RETENTION_SECONDS", "0.5")
    clean_env.setenv("POLL_INTERVAL", "0.5")

    with pytest.raises(ValueError, match="RETENTION_SECONDS"):
        ConfigModule()


def test_set_and_get_all(clean_env):
    config = ConfigModule()
    config.set("wait_timeout", 5)

    snapshot = config.get_all()
    snapshot["wait_timeout"] = 99

    assert config.get("wait_timeout") == 5
    assert config.get("missing", "fallback") == "fallback"


def test_config_schema_lists_required_keys():
    schema = ConfigModule.get_config_schema()

    assert "wait_timeout" in schema["required"]
    assert schema["optional"]["claim_guard"]["default"] is True


def test_get_config_singleton(clean_env):
    reset_config()
    try:
        assert get_config() is get_config()
    finally:
        reset_config()
