"""Tests for login page configuration loading and lookup."""

import json

import pytest

from autosignin_core.exceptions import ConfigurationError
from autosignin_core.models import LoginPageConfiguration
from autosignin_core.page_configs import ConfigurationSet


@pytest.fixture
def configs():
    return ConfigurationSet([
        LoginPageConfiguration(url_pattern="example.com", priority=1,
                               username_selectors=("#generic-user",), password_selectors=("#pw",)),
        LoginPageConfiguration(url_pattern="intranet.example.com/login", priority=10,
                               username_selectors=("#corp-user", "#generic-user"),
                               domain_selectors=("select#realm",), additional_wait_ms=300),
        LoginPageConfiguration(url_pattern="intranet.example.com", priority=10,
                               username_selectors=("#tie-user",), requires_javascript=True),
    ])


def test_matching_orders_by_priority_then_load_order(configs):
    matched = configs.matching("https://intranet.example.com/login")
    assert [c.username_selectors[0] for c in matched] == ["#corp-user", "#tie-user", "#generic-user"]


def test_selectors_are_deduplicated_in_priority_order(configs):
    assert configs.selectors_for("https://intranet.example.com/login", "username") == [
        "#corp-user", "#generic-user", "#tie-user",
    ]
    assert configs.selectors_for("https://www.example.com/", "username") == ["#generic-user"]
    assert configs.selectors_for("https://other.test/", "username") == []


def test_aggregate_flags(configs):
    url = "https://intranet.example.com/login"
    assert configs.max_additional_wait_ms(url) == 300
    assert configs.requires_javascript(url)
    assert configs.expects_domain(url)
    assert not configs.expects_domain("https://www.example.com/")
    assert configs.best_match("https://other.test/") is None


def test_rejects_non_configuration_entries():
    with pytest.raises(ConfigurationError):
        ConfigurationSet([{"url_pattern": "x"}])


def test_load_yaml(tmp_path):
    path = tmp_path / "logins.yaml"
    path.write_text(
        "configurations:\n"
        "  - url_pattern: sso.example.com\n"
        "    priority: 3\n"
        "    username_selectors: ['#user']\n"
        "    success_indicators: ['text=Welcome back']\n"
    )
    loaded = ConfigurationSet.from_file(path)
    assert len(loaded) == 1
    assert loaded.configurations[0].success_indicators == ("text=Welcome back",)


def test_load_json_list(tmp_path):
    path = tmp_path / "logins.json"
    path.write_text(json.dumps([{"urlPattern": "sso.example.com", "passwordSelectors": ["#pw"]}]))
    loaded = ConfigurationSet.from_file(path)
    assert loaded.selectors_for("https://sso.example.com/", "password") == ["#pw"]


def test_empty_file_is_empty_set(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert not ConfigurationSet.from_file(path)


@pytest.mark.parametrize("content, message", [
    ("configurations: [", "Invalid configuration format"),
    ("just a string", "expected a list"),
    ("- url_pattern: x\n  colour: blue\n", "entry #0"),
])
def test_invalid_files(tmp_path, content, message):
    path = tmp_path / "bad.yaml"
    path.write_text(content)
    with pytest.raises(ConfigurationError, match=message):
        ConfigurationSet.from_file(path)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        ConfigurationSet.from_file(tmp_path / "nope.yaml")
