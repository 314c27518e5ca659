"""Configuration loading for commitgate (environment switches and .commitgate.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

import yaml

from .checkers import DEFAULT_CHECKERS
from .classifier import DEFAULT_BUILD_ROOTS
from .models import Category, CheckerSpec

CONFIG_FILENAME = ".commitgate.yml"
CONFIG_ENV_VAR = "COMMITGATE_CONFIG"

SKIP_VARIABLES: Mapping[Category, str] = MappingProxyType(
    {
        Category.FILENAMES: "SKIP_LINT_FILENAMES",
        Category.MARKDOWN: "SKIP_LINT_MARKDOWN",
        Category.PACKAGE_JSON: "SKIP_LINT_PACKAGE_JSON",
        Category.REPL_TXT: "SKIP_LINT_REPL",
        Category.JAVASCRIPT_SRC: "SKIP_LINT_JAVASCRIPT_SRC",
        Category.JAVASCRIPT_CLI: "SKIP_LINT_JAVASCRIPT_CLI",
        Category.JAVASCRIPT_EXAMPLES: "SKIP_LINT_JAVASCRIPT_EXAMPLES",
        Category.JAVASCRIPT_TESTS: "SKIP_LINT_JAVASCRIPT_TESTS",
        Category.JAVASCRIPT_BENCHMARKS: "SKIP_LINT_JAVASCRIPT_BENCHMARKS",
        Category.PYTHON: "SKIP_LINT_PYTHON",
        Category.R: "SKIP_LINT_R",
        Category.C_SRC: "SKIP_LINT_C_SRC",
        Category.C_EXAMPLES: "SKIP_LINT_C_EXAMPLES",
        Category.C_BENCHMARKS: "SKIP_LINT_C_BENCHMARKS",
        Category.C_TESTS_FIXTURES: "SKIP_LINT_C_TESTS_FIXTURES",
        Category.SHELL: "SKIP_LINT_SHELL",
        Category.TYPESCRIPT_DECLARATIONS: "SKIP_LINT_TYPESCRIPT_DECLARATIONS",
        Category.LICENSE_HEADERS: "SKIP_LINT_LICENSE_HEADERS",
    }
)

_CHECKER_KEYS = {"command", "config", "fix", "optional", "probe"}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass(frozen=True)
class SkipPolicy:
    """Per-category skip switches, resolved once per run."""

    skipped: frozenset = frozenset()

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> "SkipPolicy":
        env = os.environ if environ is None else environ
        skipped = frozenset(
            category for category, variable in SKIP_VARIABLES.items() if env.get(variable, "")
        )
        return cls(skipped=skipped)

    def skips(self, category: Category) -> bool:
        return category in self.skipped


@dataclass(frozen=True)
class GateConfig:
    """Effective settings for one gate run."""

    root: Path
    skip: SkipPolicy = field(default_factory=SkipPolicy)
    checkers: Mapping[Category, CheckerSpec] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_CHECKERS))
    )
    build_roots: Tuple[str, ...] = DEFAULT_BUILD_ROOTS
    timeout: Optional[float] = None
    source: Optional[Path] = None


def load_config(root: Path, environ: Mapping[str, str] | None = None) -> GateConfig:
    """Build the run configuration for the repository at ``root``."""
    env = os.environ if environ is None else environ
    root = root.expanduser().resolve()
    skip = SkipPolicy.from_environ(env)

    config_file = _resolve_config_path(root, env)
    if config_file is None:
        return GateConfig(root=root, skip=skip)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    checkers = dict(DEFAULT_CHECKERS)
    checker_data = data.get("checkers")
    if checker_data is not None:
        if not isinstance(checker_data, dict):
            raise ConfigError("'checkers' must be a mapping of category to checker settings")
        for name, overrides in checker_data.items():
            try:
                category = Category.from_name(str(name))
            except ValueError as exc:
                raise ConfigError(str(exc)) from exc
            checkers[category] = _apply_overrides(category, checkers[category], overrides)

    build_roots = DEFAULT_BUILD_ROOTS
    if "build_roots" in data:
        build_roots = _as_str_tuple(data.get("build_roots"), "build_roots")

    timeout = _as_timeout(data.get("timeout"))

    return GateConfig(
        root=root,
        skip=skip,
        checkers=MappingProxyType(checkers),
        build_roots=build_roots,
        timeout=timeout,
        source=config_file,
    )


def _resolve_config_path(root: Path, env: Mapping[str, str]) -> Optional[Path]:
    override = env.get(CONFIG_ENV_VAR, "")
    if override:
        path = Path(override).expanduser()
        if not path.is_absolute():
            path = root / path
        if not path.is_file():
            raise ConfigError(f"{CONFIG_ENV_VAR} points at a missing file: {path}")
        return path
    candidate = root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigError(f"{path.name} is not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _apply_overrides(category: Category, spec: CheckerSpec, overrides: Any) -> CheckerSpec:
    if overrides is None:
        return spec
    if not isinstance(overrides, dict):
        raise ConfigError(f"Checker settings for '{category.value}' must be a mapping")
    unknown = set(overrides) - _CHECKER_KEYS
    if unknown:
        raise ConfigError(
            f"Unknown checker settings for '{category.value}': {', '.join(sorted(map(str, unknown)))}"
        )

    changes: Dict[str, Any] = {}
    if "command" in overrides:
        command = _as_str_tuple(overrides["command"], f"{category.value}.command")
        if not command:
            raise ConfigError(f"'{category.value}.command' must not be empty")
        changes["command"] = command
    if "config" in overrides:
        value = overrides["config"]
        if value is not None and not isinstance(value, str):
            raise ConfigError(f"'{category.value}.config' must be a path string")
        changes["config"] = value or None
    for key in ("fix", "optional"):
        if key in overrides:
            value = overrides[key]
            if not isinstance(value, bool):
                raise ConfigError(f"'{category.value}.{key}' must be true or false")
            changes[key] = value
    if "probe" in overrides:
        value = overrides["probe"]
        changes["probe"] = _as_str_tuple(value, f"{category.value}.probe") if value else None
    elif "command" in changes:
        # A built-in probe describes the built-in command only.
        changes["probe"] = None
    return replace(spec, **changes)


def _as_str_tuple(value: Any, key: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Sequence) and all(isinstance(item, str) for item in value):
        return tuple(value)
    raise ConfigError(f"'{key}' must be a string or a list of strings")


def _as_timeout(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError("'timeout' must be a positive number of seconds")
    return float(value)


__all__ = [
    "CONFIG_ENV_VAR",
    "CONFIG_FILENAME",
    "ConfigError",
    "GateConfig",
    "SKIP_VARIABLES",
    "SkipPolicy",
    "load_config",
]
