"""
chapterhub.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for the chapter's soft settings (identity, which roles
count as executive, leaderboard defaults, calendar timezone).  Secrets such
as ``DATABASE_URL`` and ``JWT_SECRET`` stay in the environment (``.env``).

Usage::

    from chapterhub.config import load_config

    cfg = load_config()                  # reads ./config.yaml by default
    print(cfg.organization_name)         # "JCI Carthage"
    print(cfg.executive_roles)           # frozenset({"admin", "president", "vp"})
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from chapterhub.constants import (
    ALL_ROLES,
    DEFAULT_EXECUTIVE_ROLES,
    DEFAULT_LEADERBOARD_EXCLUDE,
    DEFAULT_TOP_BY_ROLE_EXCLUDE,
)


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChapterHubConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    organization_name: str

    # API
    dashboard_port: int

    # Authorization
    executive_roles: frozenset[str] = DEFAULT_EXECUTIVE_ROLES

    # Leaderboards
    leaderboard_exclude_roles: tuple[str, ...] = DEFAULT_LEADERBOARD_EXCLUDE
    leaderboard_size: int = 5
    top_by_role_exclude_roles: tuple[str, ...] = DEFAULT_TOP_BY_ROLE_EXCLUDE

    # Calendar windows (month / quarter / year) are computed in this zone
    timezone: str = "UTC"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> ChapterHubConfig:
    """Read *path* and return a :class:`ChapterHubConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to
        ``$CHAPTERHUB_CONFIG`` or ``config.yaml`` in the working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``executive_roles`` names an unknown role.
    """
    config_path = Path(path or os.getenv("CHAPTERHUB_CONFIG", "config.yaml"))
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    executive_roles = frozenset(
        str(r).lower() for r in raw.get("executive_roles", DEFAULT_EXECUTIVE_ROLES)
    )
    unknown = executive_roles - ALL_ROLES
    if unknown:
        raise ValueError(f"Unknown executive roles in config: {sorted(unknown)}")

    return ChapterHubConfig(
        organization_name=raw["organization_name"],
        dashboard_port=int(raw["dashboard_port"]),
        executive_roles=executive_roles,
        leaderboard_exclude_roles=tuple(
            str(r).lower()
            for r in raw.get("leaderboard_exclude_roles", DEFAULT_LEADERBOARD_EXCLUDE)
        ),
        leaderboard_size=int(raw.get("leaderboard_size", 5)),
        top_by_role_exclude_roles=tuple(
            str(r).lower()
            for r in raw.get("top_by_role_exclude_roles", DEFAULT_TOP_BY_ROLE_EXCLUDE)
        ),
        timezone=raw.get("timezone", "UTC"),
    )
