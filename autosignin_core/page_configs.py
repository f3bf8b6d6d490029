"""
Login page configurations.

A ConfigurationSet is the read-only collection of per-URL configurations
shared by every login attempt in the process. Files may be JSON or YAML:

    configurations:
      - url_pattern: "intranet.example.com/login"
        priority: 10
        display_name: "Intranet SSO"
        username_selectors: ["#user"]
        password_selectors: ["#pass"]
        domain_selectors: ["select#realm"]
        submit_selectors: ["button.sign-in"]
        additional_wait_ms: 500
        success_indicators: ["#logout", "text=Welcome back"]
        failure_indicators: [".alert-danger"]

A bare top-level list of entries is accepted as well.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Tuple, Union

import yaml

from .exceptions import ConfigurationError
from .models import LoginPageConfiguration

logger = logging.getLogger(__name__)


class ConfigurationSet:
    """Immutable, priority-aware collection of LoginPageConfiguration"""

    def __init__(self, configurations: Iterable[LoginPageConfiguration] = ()):
        configs = tuple(configurations)
        for config in configs:
            if not isinstance(config, LoginPageConfiguration):
                raise ConfigurationError(f"Expected LoginPageConfiguration, got {type(config).__name__}")
        self._configurations: Tuple[LoginPageConfiguration, ...] = configs

    def __iter__(self) -> Iterator[LoginPageConfiguration]:
        return iter(self._configurations)

    def __len__(self) -> int:
        return len(self._configurations)

    def __bool__(self) -> bool:
        return bool(self._configurations)

    def __repr__(self) -> str:
        return f"ConfigurationSet({len(self._configurations)} configurations)"

    @property
    def configurations(self) -> Tuple[LoginPageConfiguration, ...]:
        return self._configurations

    def matching(self, url: str) -> List[LoginPageConfiguration]:
        """Configurations matching `url`, highest priority first; ties keep load order."""
        matches = [c for c in self._configurations if c.matches(url)]
        return sorted(matches, key=lambda c: -c.priority)

    def best_match(self, url: str):
        matches = self.matching(url)
        return matches[0] if matches else None

    def selectors_for(self, url: str, field_name: str) -> List[str]:
        """Ordered, de-duplicated selectors for one field across all matches."""
        seen = set()
        selectors = []
        for config in self.matching(url):
            for selector in config.selectors_for(field_name):
                if selector not in seen:
                    seen.add(selector)
                    selectors.append(selector)
        return selectors

    def max_additional_wait_ms(self, url: str) -> int:
        return max((c.additional_wait_ms for c in self.matching(url)), default=0)

    def requires_javascript(self, url: str) -> bool:
        return any(c.requires_javascript for c in self.matching(url))

    def expects_domain(self, url: str) -> bool:
        return any(c.domain_selectors for c in self.matching(url))

    @classmethod
    def empty(cls) -> "ConfigurationSet":
        return cls(())

    @classmethod
    def from_dicts(cls, entries: Iterable[Dict[str, Any]]) -> "ConfigurationSet":
        configs = []
        for index, entry in enumerate(entries):
            try:
                configs.append(LoginPageConfiguration.from_dict(entry))
            except ConfigurationError as e:
                raise ConfigurationError(f"Configuration entry #{index}: {e.message}") from e
        return cls(configs)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ConfigurationSet":
        """
        Load configurations from a JSON or YAML file.

        Raises:
            ConfigurationError: missing file, unparsable content or invalid entries
        """
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}")

        try:
            if path.suffix.lower() == ".json":
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Invalid configuration format in {path}: {e}")

        if data is None:
            entries: List[Any] = []
        elif isinstance(data, list):
            entries = data
        elif isinstance(data, dict) and isinstance(data.get("configurations"), list):
            entries = data["configurations"]
        else:
            raise ConfigurationError(
                f"{path}: expected a list of configurations or a 'configurations' key"
            )

        config_set = cls.from_dicts(entries)
        logger.info(f"Loaded {len(config_set)} login page configurations from {path}")
        return config_set
