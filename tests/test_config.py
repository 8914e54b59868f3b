"""
Test configuration loading.
"""

import pytest

from preview_worker.config import load_settings
from preview_worker.exceptions import ConfigurationError

REQUIRED = {
    "REDIS_URL": "redis://localhost:6379",
    "MINIO_ENDPOINT": "http://minio:9000",
    "MINIO_ACCESS_KEY": "minioadmin",
    "MINIO_SECRET_KEY": "minioadmin",
    "MINIO_BUCKET": "documentos",
    "CARBONE_URL": "http://carbone:4000",
    "DATABASE_URL": "sqlite://",
}

OPTIONAL = [
    "MINIO_PUBLIC_ENDPOINT",
    "WORKER_CONCURRENCY",
    "SOFFICE_PATH",
    "HEALTH_PORT",
    "QUEUE_NAME",
    "LOG_LEVEL",
    "ENVIRONMENT",
]


@pytest.fixture
def env(monkeypatch):
    for name in OPTIONAL:
        monkeypatch.delenv(name, raising=False)
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    return monkeypatch


class TestSettings:
    """Test settings defaults and validation."""

    def test_defaults(self, env):
        """Test values that apply when only required settings are given."""
        settings = load_settings(_env_file=None)

        assert settings.WORKER_CONCURRENCY == 2
        assert settings.QUEUE_NAME == "documentos-conversao"
        assert settings.SOFFICE_PATH == "soffice"
        assert settings.HEALTH_PORT == 3100
        assert settings.JOB_ATTEMPTS == 3
        assert settings.DOCUMENT_TABLE == "plano_documento"

    def test_public_endpoint_falls_back(self, env):
        """Test that the internal endpoint is used when no public one is set."""
        env.setenv("MINIO_PUBLIC_ENDPOINT", "  ")
        settings = load_settings(_env_file=None)

        assert settings.MINIO_PUBLIC_ENDPOINT is None
        assert settings.public_storage_endpoint == "http://minio:9000"

    def test_public_endpoint_preferred(self, env):
        env.setenv("MINIO_PUBLIC_ENDPOINT", "https://files.example.org")
        assert load_settings(_env_file=None).public_storage_endpoint == "https://files.example.org"

    def test_lowercase_env_names(self, env):
        """Test that environment names are case-insensitive."""
        env.setenv("worker_concurrency", "4")
        assert load_settings(_env_file=None).WORKER_CONCURRENCY == 4

    @pytest.mark.parametrize("name", sorted(REQUIRED))
    def test_missing_required_value(self, env, name):
        """Test that each required value is reported when absent."""
        env.delenv(name)

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(_env_file=None)

        assert name in str(exc_info.value)
        assert exc_info.value.details["missing"] == [name]

    def test_blank_required_value(self, env):
        """Test that blank values count as missing."""
        env.setenv("CARBONE_URL", "   ")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(_env_file=None)

        assert "CARBONE_URL" in exc_info.value.details["missing"]

    def test_all_missing_reported_together(self, env):
        """Test that one error names every missing value."""
        env.delenv("REDIS_URL")
        env.delenv("CARBONE_URL")

        with pytest.raises(ConfigurationError) as exc_info:
            load_settings(_env_file=None)

        assert set(exc_info.value.details["missing"]) == {"REDIS_URL", "CARBONE_URL"}

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_invalid_concurrency(self, env, value):
        """Test that the pool size must be positive."""
        env.setenv("WORKER_CONCURRENCY", value)

        with pytest.raises(ConfigurationError, match="WORKER_CONCURRENCY"):
            load_settings(_env_file=None)

    def test_log_level_normalized(self, env):
        env.setenv("LOG_LEVEL", "debug")
        assert load_settings(_env_file=None).LOG_LEVEL == "DEBUG"

    def test_invalid_environment(self, env):
        env.setenv("ENVIRONMENT", "qa")
        with pytest.raises(ConfigurationError, match="ENVIRONMENT"):
            load_settings(_env_file=None)
