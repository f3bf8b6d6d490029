"""Tests for environment-driven engine settings."""

from autosignin_core.config import EngineSettings
from autosignin_core.config_logger import get_all_config_variables, log_all_config


def test_defaults():
    settings = EngineSettings()
    assert settings.timeouts.total == 35
    assert settings.retry_policy.total_attempts == 4
    assert settings.domain_skip_sentinel == "none"
    assert settings.overall_timeout == 0


def test_from_env(monkeypatch):
    monkeypatch.setenv("AUTOSIGNIN_DETECTION_TIMEOUT", "4.5")
    monkeypatch.setenv("AUTOSIGNIN_POLL_INTERVAL_MS", "100")
    monkeypatch.setenv("AUTOSIGNIN_RETRY_ATTEMPTS", "0")
    monkeypatch.setenv("AUTOSIGNIN_RETRY_JITTER", "false")
    monkeypatch.setenv("AUTOSIGNIN_HEADLESS", "no")
    monkeypatch.setenv("AUTOSIGNIN_CONFIG_FILE", "/etc/autosignin/logins.yaml")
    monkeypatch.setenv("AUTOSIGNIN_OVERALL_TIMEOUT", "90")

    settings = EngineSettings.from_env()

    assert settings.detection_timeout == 4.5
    assert settings.poll_interval == 0.1
    assert settings.retry_policy.total_attempts == 1
    assert settings.retry_jitter is False
    assert settings.headless is False
    assert settings.config_file == "/etc/autosignin/logins.yaml"
    assert settings.overall_timeout == 90.0


def test_config_variables_round_trip_env_names():
    variables = get_all_config_variables(EngineSettings())
    assert variables["AUTOSIGNIN_POLL_INTERVAL_MS"] == 250
    assert variables["AUTOSIGNIN_CONFIG_FILE"] == "None"
    assert all(name.startswith("AUTOSIGNIN_") for name in variables)


def test_log_all_config():
    class Recorder:
        def __init__(self):
            self.pairs = []

        def log_kv(self, key, value):
            self.pairs.append((key, value))

    recorder = Recorder()
    log_all_config(recorder, EngineSettings(), runtime={"url": "https://x.test/"})
    assert ("AUTOSIGNIN_RETRY_ATTEMPTS", "3") in recorder.pairs
    assert recorder.pairs[-1] == ("url", "https://x.test/")
    log_all_config(None, EngineSettings())
