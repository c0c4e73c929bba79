"""Resolver configuration and its sanity checks."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .exceptions import ConfigError
from .models import Priority

logger = logging.getLogger(__name__)

# Dependency levels:
#   1 required only
#   2 required and recommended
#   3 optional too, but only for the requested packages
#   4 optional everywhere
DEPENDENCY_LEVELS = (1, 2, 3, 4)

# Config file key -> ResolverConfig attribute
CONFIG_KEYS = {
    "DEP_LEVEL": "dependency_level",
    "MAX_REWIRES": "max_rewires",
    "ROOT_NAME": "root_name",
}

_ASSIGNMENT = re.compile(r'^\s*([A-Z_][A-Z0-9_]*)\s*=\s*(.*?)\s*$')


@dataclass
class ResolverConfig:
    """Settings of one build-order computation."""

    dependency_level: int = 2
    max_rewires: int = 1000
    root_name: str = "root"

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Check every parameter against its accepted values."""
        checks = {
            "DEP_LEVEL": (self.dependency_level, lambda v: v in DEPENDENCY_LEVELS, DEPENDENCY_LEVELS),
            "MAX_REWIRES": (self.max_rewires, lambda v: isinstance(v, int) and v > 0, None),
            # An empty or "/" name could never be told apart from a package
            "ROOT_NAME": (self.root_name, lambda v: bool(v) and v.strip() not in ("", "/"), None),
        }
        for name, (value, accepted, choices) in checks.items():
            logger.debug(f"{name}: <{value}>")
            if not accepted(value):
                raise ConfigError(name, value, choices)

    @property
    def priority_ceiling(self) -> int:
        """Ceiling for the directly requested packages."""
        return int(Priority.OPTIONAL) if self.dependency_level >= 3 else self.dependency_level

    def ceiling_at(self, depth: int, top_depth: int = 0) -> int:
        """Ceiling for a node at ``depth``; ``top_depth`` is the depth of requested packages."""
        ceiling = self.priority_ceiling
        if self.dependency_level == 3 and depth > top_depth:
            ceiling = min(ceiling, int(Priority.RECOMMENDED))
        return ceiling

    @classmethod
    def from_file(cls, path, **overrides) -> "ResolverConfig":
        """
        Read ``KEY=value`` lines from a config file.

        Keyword overrides that are not None win over file values.
        """
        values = cls._read_assignments(Path(path))
        kwargs: Dict[str, object] = {}
        for key, attr in CONFIG_KEYS.items():
            if key in values:
                kwargs[attr] = values[key]

        for attr in ("dependency_level", "max_rewires"):
            if attr in kwargs:
                raw = kwargs[attr]
                try:
                    kwargs[attr] = int(raw)
                except (TypeError, ValueError):
                    key = next(k for k, a in CONFIG_KEYS.items() if a == attr)
                    raise ConfigError(key, raw) from None

        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        logger.info(f"Loaded configuration from {path}")
        return cls(**kwargs)

    @staticmethod
    def _read_assignments(path: Path) -> Dict[str, str]:
        values: Dict[str, str] = {}
        with open(path, 'r') as f:
            for line in f:
                line = line.split('#', 1)[0]
                if not line.strip():
                    continue
                match = _ASSIGNMENT.match(line)
                if not match:
                    logger.warning(f"Ignoring unparseable config line in {path}: {line.strip()}")
                    continue
                key, value = match.groups()
                if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                    value = value[1:-1]
                if key not in CONFIG_KEYS:
                    logger.debug(f"Ignoring unknown config key {key}")
                    continue
                values[key] = value
        return values


def load_config(config_file: Optional[str] = None, **overrides) -> ResolverConfig:
    """Build a config from an optional file plus command line overrides."""
    if config_file:
        return ResolverConfig.from_file(config_file, **overrides)
    return ResolverConfig(**{k: v for k, v in overrides.items() if v is not None})
