"""Runtime configuration for the procedure governance core.

Settings are read from the environment once, frozen, and passed explicitly
into every component. Nothing in the core consults the environment after
``GovernanceSettings.from_env`` has returned.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

from procgov.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path("data")
DEFAULT_UPLOADS_DIR = Path("uploads")
DEFAULT_MINIMUM_QUALITY_SCORE = 60
DEFAULT_ADMIN_ROLE = "admin"
DEFAULT_ADMINS: frozenset[str] = frozenset({"admin"})
AUDIT_BACKENDS = ("json", "sql", "memory")


@dataclass(frozen=True)
class GovernanceSettings:
    data_dir: Path = DEFAULT_DATA_DIR
    uploads_dir: Path = DEFAULT_UPLOADS_DIR
    procedures_path: Path = DEFAULT_DATA_DIR / "procedures.json"
    audit_log_path: Path = DEFAULT_DATA_DIR / "audit_log.json"
    audit_backend: str = "json"
    database_url: str = f"sqlite:///{DEFAULT_DATA_DIR / 'audit.db'}"
    minimum_quality_score: int = DEFAULT_MINIMUM_QUALITY_SCORE
    criteria_path: Path | None = None
    admins: frozenset[str] = field(default=DEFAULT_ADMINS)
    admin_role: str = DEFAULT_ADMIN_ROLE
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.audit_backend not in AUDIT_BACKENDS:
            raise ConfigurationError(
                "Unknown audit backend",
                details={"backend": self.audit_backend, "supported": list(AUDIT_BACKENDS)},
            )
        if not 0 <= self.minimum_quality_score <= 100:
            raise ConfigurationError(
                "Minimum quality score must be within 0..100",
                details={"minimum_quality_score": self.minimum_quality_score},
            )
        if not self.admin_role:
            raise ConfigurationError("Admin role must be non-empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GovernanceSettings":
        env = os.environ if environ is None else environ
        data_dir = Path(env.get("PROCGOV_DATA_DIR", str(DEFAULT_DATA_DIR)))
        criteria_path = env.get("PROCGOV_CRITERIA_PATH")
        admins_override = env.get("PROCGOV_ADMINS")
        if admins_override is not None:
            admins = frozenset(item.strip() for item in admins_override.split(",") if item.strip())
        else:
            roles_path = Path(env.get("PROCGOV_ROLES_PATH", "roles.config.json"))
            admins = load_admins(roles_path)
        return cls(
            data_dir=data_dir,
            uploads_dir=Path(env.get("PROCGOV_UPLOADS_DIR", str(DEFAULT_UPLOADS_DIR))),
            procedures_path=Path(env.get("PROCGOV_PROCEDURES_PATH", str(data_dir / "procedures.json"))),
            audit_log_path=Path(env.get("PROCGOV_AUDIT_LOG_PATH", str(data_dir / "audit_log.json"))),
            audit_backend=env.get("PROCGOV_AUDIT_BACKEND", "json").lower(),
            database_url=env.get("PROCGOV_DATABASE_URL", f"sqlite:///{data_dir / 'audit.db'}"),
            minimum_quality_score=_parse_int(
                env.get("PROCGOV_MIN_QUALITY_SCORE"), DEFAULT_MINIMUM_QUALITY_SCORE, "PROCGOV_MIN_QUALITY_SCORE"
            ),
            criteria_path=Path(criteria_path) if criteria_path else None,
            admins=admins,
            admin_role=env.get("PROCGOV_ADMIN_ROLE", DEFAULT_ADMIN_ROLE),
            log_level=env.get("PROCGOV_LOG_LEVEL", "INFO").upper(),
        )

    def with_overrides(self, **changes: object) -> "GovernanceSettings":
        return replace(self, **changes)


def _parse_int(raw: str | None, default: int, name: str) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer", details={"value": raw}) from exc


def load_admins(path: Path) -> frozenset[str]:
    """Read ``{"admins": [...]}`` from ``path``; fall back to defaults when unusable."""

    if not path.exists():
        return DEFAULT_ADMINS
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        admins = payload["admins"]
        if not isinstance(admins, list):
            raise TypeError("admins must be a list")
    except (OSError, ValueError, KeyError, TypeError) as exc:
        logger.warning("Could not load roles config %s, using defaults: %s", path, exc)
        return DEFAULT_ADMINS
    return frozenset(str(item) for item in admins if str(item).strip())


__all__ = [
    "AUDIT_BACKENDS",
    "DEFAULT_ADMINS",
    "DEFAULT_ADMIN_ROLE",
    "DEFAULT_MINIMUM_QUALITY_SCORE",
    "GovernanceSettings",
    "load_admins",
]
