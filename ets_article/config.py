from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path

RDATASETS_URL = "https://vincentarelbundock.github.io/Rdatasets/csv"


def resolve_path(env_key: str, default_rel: str) -> Path:
    raw = os.getenv(env_key, default_rel)
    p = Path(raw)
    return p if p.is_absolute() else (Path.cwd() / p).resolve()


@dataclass
class Settings:
    """Runtime settings, read from ``ETS_*`` environment variables."""
    data_dir: Path
    output_dir: Path
    data_base_url: str = RDATASETS_URL
    request_timeout: int = 30
    horizon: int = 10
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            data_dir=resolve_path("ETS_DATA_DIR", "data"),
            output_dir=resolve_path("ETS_OUTPUT_DIR", "output"),
            data_base_url=os.getenv("ETS_DATA_BASE_URL", RDATASETS_URL).rstrip("/"),
            request_timeout=int(os.getenv("ETS_REQUEST_TIMEOUT", "30")),
            horizon=int(os.getenv("ETS_HORIZON", "10")),
            log_level=os.getenv("ETS_LOG_LEVEL", "INFO"),
        )
