"""Benchmark configuration and profile loading.

Handles:
- The ``BenchConfig`` dataclass describing one comparison run.
- Loading run profiles from YAML files.
- Merging CLI options with profile values.
- Validating the final configuration before any worker is started.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

log = logging.getLogger("benchduel")

DEFAULT_BASELINE = "sqlite"
DEFAULT_CANDIDATE = "memory"


# ---------------------------------------------------------------------------
# SystemDef / BenchConfig
# ---------------------------------------------------------------------------


@dataclass
class SystemDef:
    """One system under test."""

    name: str
    description: str = ""
    workload: str | None = None  # "module:attr"; None means the built-in registry

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dict (sparse: omits defaults)."""
        d: dict[str, Any] = {"name": self.name}
        if self.description:
            d["description"] = self.description
        if self.workload:
            d["workload"] = self.workload
        return d


@dataclass
class BenchConfig:
    """Resolved configuration for a comparison run."""

    name: str = ""
    description: str = ""

    # Systems in order: the first is the baseline, the second the candidate.
    systems: dict[str, SystemDef] = field(default_factory=dict)

    iterations: int = 3
    user_count: int = 10_000
    seed: int = 101
    timeout: float | None = None  # Per-worker timeout in seconds; None waits forever
    test_type: str = "performance"

    # Interpreter used to launch workers.
    python: str = field(default_factory=lambda: sys.executable)
    work_dir: Path | None = None
    # Extra environment variables for worker processes.
    env: dict[str, str] = field(default_factory=dict)

    @property
    def system_names(self) -> list[str]:
        return list(self.systems)

    @property
    def baseline(self) -> SystemDef:
        return list(self.systems.values())[0]

    @property
    def candidate(self) -> SystemDef:
        return list(self.systems.values())[1]


def default_config() -> BenchConfig:
    """Configuration comparing the two built-in systems."""
    return BenchConfig(
        systems={
            DEFAULT_BASELINE: SystemDef(name=DEFAULT_BASELINE),
            DEFAULT_CANDIDATE: SystemDef(name=DEFAULT_CANDIDATE),
        }
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: BenchConfig) -> list[ValidationError]:
    """Validate a run configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if len(config.systems) != 2:
        errors.append(
            ValidationError(
                field="systems",
                message=(
                    f"Exactly two systems are compared (got {len(config.systems)}). "
                    "Use --baseline and --candidate or a profile 'systems' mapping."
                ),
            )
        )

    for key, system in config.systems.items():
        if not key or not key.strip() or any(c.isspace() for c in key):
            errors.append(
                ValidationError(
                    field="systems",
                    message=f"System names must be non-empty and contain no whitespace: {key!r}",
                )
            )
        if system.workload is not None:
            module_name, sep, attr = system.workload.partition(":")
            if not sep or not module_name or not attr:
                errors.append(
                    ValidationError(
                        field=f"systems.{key}.workload",
                        message=(
                            f"Workload for system '{key}' must look like 'module:attribute' "
                            f"(got {system.workload!r})."
                        ),
                    )
                )

    if config.iterations < 1:
        errors.append(
            ValidationError(
                field="iterations",
                message=f"Iterations must be at least 1 (got {config.iterations}).",
            )
        )
    elif config.iterations < 3:
        errors.append(
            ValidationError(
                field="iterations",
                message=(
                    f"Fewer than 3 iterations ({config.iterations}) make min/max "
                    "spreads hard to read."
                ),
                severity="warning",
            )
        )

    if config.user_count < 1:
        errors.append(
            ValidationError(
                field="user_count",
                message=f"User count must be positive (got {config.user_count}).",
            )
        )

    if config.timeout is not None and config.timeout <= 0:
        errors.append(
            ValidationError(
                field="timeout",
                message=f"Timeout must be positive (got {config.timeout}).",
            )
        )

    if config.test_type != "performance":
        errors.append(
            ValidationError(
                field="test_type",
                message=f"Unknown test type: {config.test_type}",
            )
        )

    return errors


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a run profile from a YAML file.

    Profile format::

        name: "sqlite vs memory"
        iterations: 3
        user_count: 10000
        seed: 101
        timeout: 900

        systems:
          sqlite:
            description: "SQLite file database"
          memory:
            description: "Plain dicts"
            workload: "benchduel.bench.workloads:memory_workload"

    Returns:
        The parsed YAML as a dict.
    """
    import yaml

    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    data = yaml.safe_load(profile_path.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    return data


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> BenchConfig:
    """Build a BenchConfig from a parsed YAML profile.

    CLI overrides take precedence over profile values for: name,
    iterations, user_count, seed, timeout and work_dir.  ``baseline`` /
    ``candidate`` overrides replace the profile's systems entirely.

    Args:
        profile_data: Parsed YAML profile dict.
        cli_overrides: Dict of CLI option values; None values are ignored.

    Returns:
        BenchConfig with systems and settings populated.
    """
    cli = {k: v for k, v in (cli_overrides or {}).items() if v is not None}

    config = BenchConfig(
        name=cli.get("name") or profile_data.get("name", ""),
        description=profile_data.get("description", ""),
        iterations=cli.get("iterations", profile_data.get("iterations", 3)),
        user_count=cli.get("user_count", profile_data.get("user_count", 10_000)),
        seed=cli.get("seed", profile_data.get("seed", 101)),
        timeout=cli.get("timeout", profile_data.get("timeout")),
    )

    env_data = profile_data.get("env", {}) or {}
    if not isinstance(env_data, dict):
        raise ValueError("Profile 'env' must be a mapping of variable -> value")
    config.env = {str(k): str(v) for k, v in env_data.items()}

    systems_data = profile_data.get("systems", {})
    if not isinstance(systems_data, dict):
        raise ValueError("Profile 'systems' must be a mapping of system_name -> definition")

    for name, sys_data in systems_data.items():
        if sys_data is None:
            sys_data = {}
        if not isinstance(sys_data, dict):
            raise ValueError(f"System '{name}' must be a mapping, got {type(sys_data).__name__}")
        config.systems[str(name)] = SystemDef(
            name=str(name),
            description=sys_data.get("description", ""),
            workload=sys_data.get("workload"),
        )

    apply_system_overrides(config, cli.get("baseline"), cli.get("candidate"))

    if cli.get("work_dir"):
        config.work_dir = Path(cli["work_dir"])
    elif profile_data.get("work_dir"):
        config.work_dir = Path(profile_data["work_dir"])

    return config


def apply_system_overrides(
    config: BenchConfig,
    baseline: str | None,
    candidate: str | None,
) -> None:
    """Replace the baseline and/or candidate system by name.

    Definitions already present in *config* (e.g. from a profile) are
    reused when a name matches.  A config without systems gets the
    built-in defaults for whichever side is not named.
    """
    if not baseline and not candidate and config.systems:
        return
    current = list(config.systems.values())
    known = dict(config.systems)

    def _pick(name: str | None, index: int, fallback: str) -> SystemDef:
        if name:
            return known.get(name) or SystemDef(name=name)
        if len(current) > index:
            return current[index]
        return SystemDef(name=fallback)

    base = _pick(baseline, 0, DEFAULT_BASELINE)
    cand = _pick(candidate, 1, DEFAULT_CANDIDATE)
    config.systems = {base.name: base, cand.name: cand}
