"""tailor_import.config

Service settings read from the environment.  Secrets (the JWT signing key,
the database DSN) are only ever taken from env vars, never from flags.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from tailor_import.shared import MergePolicy

VALID_UNITS = ("cm", "in")
DEFAULT_PREVIEW_LIMIT = 10


class SettingsError(ValueError):
    """Raised when an environment variable holds an unusable value."""


@dataclass(frozen=True)
class Settings:
    db_dsn: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    default_unit: str = "cm"
    preview_limit: int = DEFAULT_PREVIEW_LIMIT
    merge_policy: MergePolicy = MergePolicy.FILL_MISSING


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from TAILOR_* environment variables."""
    env = os.environ if environ is None else environ

    default_unit = env.get("TAILOR_DEFAULT_UNIT", "cm").strip().lower()
    if default_unit not in VALID_UNITS:
        raise SettingsError(
            f"TAILOR_DEFAULT_UNIT must be one of {VALID_UNITS}, got {default_unit!r}"
        )

    raw_limit = env.get("TAILOR_PREVIEW_LIMIT", str(DEFAULT_PREVIEW_LIMIT))
    try:
        preview_limit = int(raw_limit)
    except ValueError:
        raise SettingsError(f"TAILOR_PREVIEW_LIMIT must be an integer, got {raw_limit!r}")
    if preview_limit < 1:
        raise SettingsError("TAILOR_PREVIEW_LIMIT must be >= 1")

    raw_policy = env.get("TAILOR_MERGE_POLICY", MergePolicy.FILL_MISSING.value)
    try:
        merge_policy = MergePolicy(raw_policy.strip().lower())
    except ValueError:
        raise SettingsError(
            f"TAILOR_MERGE_POLICY must be one of "
            f"{[p.value for p in MergePolicy]}, got {raw_policy!r}"
        )

    return Settings(
        db_dsn=env.get("TAILOR_DB_DSN", ""),
        jwt_secret=env.get("TAILOR_JWT_SECRET", ""),
        jwt_algorithm=env.get("TAILOR_JWT_ALGORITHM", "HS256"),
        default_unit=default_unit,
        preview_limit=preview_limit,
        merge_policy=merge_policy,
    )
