"""Environment-driven settings for the API and CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Mapping, Optional

ENV_PREFIX = "EXPENSE_TRACKER_"
_TRUTHY = {"1", "true", "yes", "on"}


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass(frozen=True)
class Settings:
    env: str = "prod"
    storage: str = "json"
    data_dir: Path = Path("data")
    database_url: Optional[str] = None
    allowed_origins: List[str] = field(default_factory=list)
    seed: bool = False
    log_level: str = "INFO"

    @property
    def is_dev(self) -> bool:
        return self.env in {"dev", "development"}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        environ = os.environ if environ is None else environ

        def get(name: str, default: Optional[str] = None) -> Optional[str]:
            value = environ.get(ENV_PREFIX + name)
            return value if value not in (None, "") else default

        return cls(
            env=(get("ENV", "prod") or "prod").lower(),
            storage=(get("STORAGE", "json") or "json").lower(),
            data_dir=Path(get("DATA_DIR", "data") or "data"),
            database_url=get("DATABASE_URL"),
            allowed_origins=_split_origins(get("ALLOWED_ORIGINS")),
            seed=(get("SEED", "") or "").lower() in _TRUTHY,
            log_level=(get("LOG_LEVEL", "INFO") or "INFO").upper(),
        )

    def with_overrides(self, **overrides: object) -> "Settings":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
