from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv

DEFAULT_DISTANCE_TIMEOUT = 10.0


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    data_dir: Path = Path("data")
    google_maps_api_key: str = ""
    distance_timeout: float = DEFAULT_DISTANCE_TIMEOUT
    cancelled_blocks: bool = True

    @staticmethod
    def from_env() -> "Settings":
        load_dotenv()
        try:
            timeout = float(os.getenv("CAVAN_DISTANCE_TIMEOUT") or DEFAULT_DISTANCE_TIMEOUT)
        except ValueError:
            raise ValueError("CAVAN_DISTANCE_TIMEOUT must be a number of seconds") from None
        if timeout <= 0:
            raise ValueError("CAVAN_DISTANCE_TIMEOUT must be greater than zero")

        return Settings(
            data_dir=Path(os.getenv("CAVAN_DATA_DIR") or "data"),
            google_maps_api_key=(os.getenv("GOOGLE_MAPS_API_KEY") or "").strip(),
            distance_timeout=timeout,
            cancelled_blocks=_env_flag("CAVAN_CANCELLED_BLOCKS", True),
        )
