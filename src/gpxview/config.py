"""
gpxview configuration loader

This module centralizes *all* configuration handling for gpxview.

Design goals:
- CLI flags override everything.
- Provide sensible defaults if no config exists.
- Allow per-machine config without committing personal settings:
    ~/.config/gpxview/config.toml
- Allow repo-local config:
    <repo_root>/config/config.toml
- Allow environment variable overrides for automation.

Precedence (highest to lowest) for any given value:
1) CLI argument (handled by gpxview-analyze)
2) Environment variables (GPXVIEW_*)
3) User config: ~/.config/gpxview/config.toml
4) Repo config: <repo_root>/config/config.toml
5) Hard defaults

This module uses Python's built-in tomllib on Python 3.11+, or `tomli` if installed.

Example config.toml:

    [pool]
    size = 4                  # worker processes; default: CPU count
    start_method = "spawn"    # fork / spawn / forkserver; default: platform

    [parse]
    use_converter = true      # try the gpxpy/GeoJSON strategy first

    [profile]
    threshold = 5000          # downsample profiles longer than this
    target = 2000             # ...to about this many entries
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from gpxview.errors import ConfigError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

START_METHODS = ("fork", "spawn", "forkserver")


# ---------------------------------------------------------------------------
# TOML loading helpers
# ---------------------------------------------------------------------------
def _load_toml(path: Path) -> dict[str, Any]:
    """
    Parse a TOML file at `path`.

    Behavior:
    - If the file does not exist, return an empty dict (non-fatal).
    - If the file exists but is invalid TOML, raise ConfigError
      with a clear, user-facing message.
    """
    if not path.is_file():
        return {}

    try:
        return tomllib.loads(path.read_text(encoding="utf-8")) or {}
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to parse TOML config: {path} ({e})") from e


# ---------------------------------------------------------------------------
# Generic coercion helpers
# ---------------------------------------------------------------------------
def _deep_get(d: dict[str, Any], dotted_key: str) -> Any:
    """
    Fetch nested dictionary values using dot-separated keys.

    Example:
        _deep_get(cfg, "pool.size")

    Returns None if any part of the path is missing.
    """
    cur: Any = d
    for part in dotted_key.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return None
        cur = cur[part]
    return cur


def _as_bool(v: Any) -> Optional[bool]:
    """
    Coerce loosely-typed config values into booleans.

    Returns None for anything unrecognized, so the caller keeps the
    lower-precedence value.
    """
    if v is None:
        return None
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        s = v.strip().lower()
        if s in ("true", "yes", "y", "1", "on"):
            return True
        if s in ("false", "no", "n", "0", "off"):
            return False
    return None


def _as_positive_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        n = int(str(v).strip()) if isinstance(v, str) else int(v)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def _as_start_method(v: Any) -> Optional[str]:
    if isinstance(v, str) and v.strip().lower() in START_METHODS:
        return v.strip().lower()
    return None


# key -> (coercion, environment variable)
_KEYS = {
    "pool.size": (_as_positive_int, "GPXVIEW_POOL_SIZE"),
    "pool.start_method": (_as_start_method, "GPXVIEW_START_METHOD"),
    "parse.use_converter": (_as_bool, "GPXVIEW_USE_CONVERTER"),
    "profile.threshold": (_as_positive_int, "GPXVIEW_PROFILE_THRESHOLD"),
    "profile.target": (_as_positive_int, "GPXVIEW_PROFILE_TARGET"),
}


# ---------------------------------------------------------------------------
# Repo discovery
# ---------------------------------------------------------------------------
def find_repo_root(start: Path) -> Optional[Path]:
    """
    Walk upward from `start` looking for the gpxview repo root.

    Heuristic:
    - The presence of a `config/` directory marks the repo root
    """
    start = start.resolve()
    for p in [start] + list(start.parents):
        if (p / "config").is_dir():
            return p
    return None


# ---------------------------------------------------------------------------
# Typed config dataclasses
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class PoolConfig:
    size: Optional[int] = None          # None: CPU count
    start_method: Optional[str] = None  # None: platform default


@dataclass(frozen=True)
class ParseConfig:
    use_converter: bool = True


@dataclass(frozen=True)
class ProfileConfig:
    threshold: int = 5000
    target: int = 2000


@dataclass(frozen=True)
class GpxViewConfig:
    """
    Fully merged gpxview configuration.

    Attributes:
    - pool: dispatch pool sizing
    - parse: parser strategy selection
    - profile: elevation profile downsampling
    - source: provenance map showing where each value came from
    """

    pool: PoolConfig
    parse: ParseConfig
    profile: ProfileConfig
    source: dict[str, str]


# ---------------------------------------------------------------------------
# Main config loader
# ---------------------------------------------------------------------------
def load_config(
    repo_root: Optional[Path] = None,
    repo_config_path: Optional[Path] = None,
    user_config_path: Optional[Path] = None,
) -> GpxViewConfig:
    """
    Load, merge, and normalize all gpxview configuration.

    This function is the single authoritative entry point
    for configuration access.
    """

    # Locate repo and config files
    if repo_root is None:
        repo_root = find_repo_root(Path(__file__).resolve())
    if repo_config_path is None and repo_root is not None:
        repo_config_path = repo_root / "config" / "config.toml"
    if user_config_path is None:
        user_config_path = Path.home() / ".config" / "gpxview" / "config.toml"

    repo_cfg = _load_toml(repo_config_path) if repo_config_path else {}
    user_cfg = _load_toml(user_config_path) if user_config_path else {}

    defaults = GpxViewConfig(PoolConfig(), ParseConfig(), ProfileConfig(), {})
    values: dict[str, Any] = {
        "pool.size": defaults.pool.size,
        "pool.start_method": defaults.pool.start_method,
        "parse.use_converter": defaults.parse.use_converter,
        "profile.threshold": defaults.profile.threshold,
        "profile.target": defaults.profile.target,
    }
    src = {k: "default" for k in values}

    # Repo, then user, then environment; later layers win.
    for cfg, label in ((repo_cfg, f"repo:{repo_config_path}"), (user_cfg, f"user:{user_config_path}")):
        for key, (coerce, _env) in _KEYS.items():
            v = coerce(_deep_get(cfg, key))
            if v is None:
                continue
            values[key] = v
            src[key] = label

    for key, (coerce, env) in _KEYS.items():
        v = coerce(os.environ.get(env))
        if v is None:
            continue
        values[key] = v
        src[key] = f"env:{env}"

    return GpxViewConfig(
        pool=PoolConfig(size=values["pool.size"], start_method=values["pool.start_method"]),
        parse=ParseConfig(use_converter=values["parse.use_converter"]),
        profile=ProfileConfig(threshold=values["profile.threshold"], target=values["profile.target"]),
        source=src,
    )
