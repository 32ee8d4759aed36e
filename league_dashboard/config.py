"""Environment-driven settings and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s | %(message)s"

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    db_path: str = "league_dashboard.db"
    log_level: str = "INFO"
    timezone: str = "America/New_York"
    file_prefix: str = "bsd"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Read ``LEAGUE_DASHBOARD_*`` variables, loading a ``.env`` file first.

        Passing ``environ`` skips the ``.env`` lookup and reads only that mapping.
        """

        if environ is None:
            load_dotenv(Path.cwd() / ".env")
            environ = os.environ
        defaults = cls()
        return cls(
            db_path=environ.get("LEAGUE_DASHBOARD_DB_PATH", defaults.db_path),
            log_level=environ.get("LEAGUE_DASHBOARD_LOG_LEVEL", defaults.log_level).upper(),
            timezone=environ.get("LEAGUE_DASHBOARD_TIMEZONE", defaults.timezone),
            file_prefix=environ.get("LEAGUE_DASHBOARD_FILE_PREFIX", defaults.file_prefix),
        )


def configure_logging(level: str = "INFO") -> None:
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    log.debug("Logging configured at %s", logging.getLevelName(numeric))


__all__ = ["LOG_FORMAT", "Settings", "configure_logging"]
