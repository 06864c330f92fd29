import pytest

from antetown.errors import ConfigError
from antetown.settings import DEFAULT_SECRET, Settings, get_server_info, load_settings
from antetown.version import get_version_info

ENV_KEYS = ("ANTETOWN_SECRET", "SERVER_NAME", "SERVER_ENV", "HEALTHCHECK_HOST",
            "HEALTHCHECK_PORT", "LOG_LEVEL", "SWEEP_INTERVAL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_without_env_file(tmp_path):
    settings = load_settings(str(tmp_path / "missing.env"))
    assert settings == Settings()
    assert settings.secret == DEFAULT_SECRET


def test_env_file_values(tmp_path):
    env_path = tmp_path / ".env"
    env_path.write_text("SERVER_ENV=Staging\nHEALTHCHECK_PORT=8080\n# comment\nANTETOWN_SECRET=s3=cret\n"
                        "LOG_LEVEL=debug\n")
    settings = load_settings(str(env_path))
    assert settings.server_env == "Staging"
    assert settings.health_port == 8080
    # values with equals signs are preserved
    assert settings.secret == "s3=cret"
    assert settings.log_level == "DEBUG"


def test_real_environment_wins(monkeypatch, tmp_path):
    env_path = tmp_path / ".env"
    env_path.write_text("SERVER_ENV=Staging\nSERVER_NAME=From File\n")
    monkeypatch.setenv("SERVER_ENV", "Public Stable")
    settings = load_settings(str(env_path))
    assert settings.server_env == "Public Stable"
    assert settings.server_name == "From File"


@pytest.mark.parametrize("key, value", [("HEALTHCHECK_PORT", "http"), ("HEALTHCHECK_PORT", "70000"),
                                        ("SWEEP_INTERVAL", "soon")])
def test_invalid_numbers(monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises(ConfigError):
        load_settings(None)


def test_server_info_hides_secret():
    info = get_server_info(Settings(secret="hunter2", health_port=9000))
    assert info["health_endpoint"] == "0.0.0.0:9000"
    assert "hunter2" not in info.values()
    for key, value in get_version_info().items():
        assert info[key] == value
