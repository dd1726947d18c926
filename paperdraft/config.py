"""Runtime settings read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path


CACHE_DIR = Path.home() / ".cache" / "paperdraft"

# Only for local development; set PAPERDRAFT_JWT_SECRET anywhere else.
DEV_JWT_SECRET = "paperdraft-dev-secret-change-me"


@dataclass
class Settings:
    api_url: str = "http://localhost:3001"
    api_timeout: float = 60.0
    db_path: str = str(CACHE_DIR / "papers.db")
    output_dir: str = str(CACHE_DIR / "exports")
    jwt_secret: str = DEV_JWT_SECRET
    jwt_expiry: int = 60 * 60 * 24 * 7  # 7 days
    log_level: str = "INFO"

    @property
    def uses_dev_secret(self) -> bool:
        return self.jwt_secret == DEV_JWT_SECRET

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            api_url=os.environ.get("PAPERDRAFT_API_URL", defaults.api_url).rstrip("/"),
            api_timeout=float(os.environ.get("PAPERDRAFT_API_TIMEOUT", defaults.api_timeout)),
            db_path=os.environ.get("PAPERDRAFT_DB_PATH", defaults.db_path),
            output_dir=os.environ.get("PAPERDRAFT_OUTPUT_DIR", defaults.output_dir),
            jwt_secret=os.environ.get("PAPERDRAFT_JWT_SECRET", defaults.jwt_secret),
            jwt_expiry=int(os.environ.get("PAPERDRAFT_JWT_EXPIRY", defaults.jwt_expiry)),
            log_level=os.environ.get("PAPERDRAFT_LOG_LEVEL", defaults.log_level).upper(),
        )
