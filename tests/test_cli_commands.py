"""
Tests for the autosignin command line.
"""

import json

import pytest

from autosignin_core import cli
from autosignin_core.browser import BrowserSession
from autosignin_core.config import EngineSettings
from autosignin_core.models import LoginOutcome, OutcomeKind


class TestParser:

    def test_minimal_arguments(self):
        args = cli.build_parser().parse_args(["https://intranet.example.com/login", "-u", "alice"])
        assert args.url == "https://intranet.example.com/login"
        assert args.username == "alice"
        assert args.domain is None
        assert args.password is None
        assert not args.headful

    def test_username_is_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["https://intranet.example.com/login"])

    def test_settings_overrides(self):
        args = cli.build_parser().parse_args([
            "https://intranet.example.com/login", "-u", "alice", "-d", "CORP",
            "--config", "logins.yaml", "--attempts", "1", "--headful", "--verbose",
        ])
        settings = cli.settings_from_args(args, EngineSettings())
        assert settings.config_file == "logins.yaml"
        assert settings.retry_attempts == 1
        assert settings.headless is False
        assert settings.debug is True

    def test_settings_untouched_without_overrides(self):
        base = EngineSettings()
        args = cli.build_parser().parse_args(["https://x.test/", "-u", "alice"])
        assert cli.settings_from_args(args, base) is base


class TestExitCodes:

    @pytest.mark.parametrize("kind, code", [
        (OutcomeKind.SUCCESS, 0),
        (OutcomeKind.INVALID_CREDENTIALS, 1),
        (OutcomeKind.FORM_NOT_FOUND, 1),
        (OutcomeKind.TIMEOUT, 1),
        (OutcomeKind.AMBIGUOUS, 1),
        (OutcomeKind.DRIVER_FAILURE, 2),
        (OutcomeKind.UNEXPECTED_ERROR, 2),
        (OutcomeKind.CONFIGURATION_ERROR, 3),
        (OutcomeKind.CANCELLED, 130),
    ])
    def test_mapping(self, kind, code):
        assert cli.exit_code_for(LoginOutcome(kind, "https://x.test/")) == code

    def test_every_outcome_has_a_code(self):
        assert set(cli.EXIT_CODES) == set(OutcomeKind)

    def test_no_outcome(self):
        assert cli.exit_code_for(None) == 2


def test_missing_password_is_a_configuration_error(monkeypatch):
    monkeypatch.delenv("AUTOSIGNIN_PASSWORD", raising=False)
    assert cli.main(["https://intranet.example.com/login", "-u", "alice", "--quiet"]) == 3


def test_outcome_json_is_serializable():
    outcome = LoginOutcome(OutcomeKind.SUCCESS, "https://x.test/", confidence=95)
    assert json.loads(json.dumps(outcome.to_dict()))["confidence"] == 95


class TestBrowserSession:

    def test_launch_args(self):
        args = BrowserSession(headless=True).launch_args()
        assert args["headless"] is True
        assert "--no-sandbox" in args["args"]
        assert "--kiosk" not in args["args"]

    def test_kiosk_only_when_headful(self):
        assert "--kiosk" in BrowserSession(headless=False, kiosk=True).launch_args()["args"]
        assert "--kiosk" not in BrowserSession(headless=True, kiosk=True).launch_args()["args"]
