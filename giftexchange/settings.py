import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError

DEFAULT_DATA_DIR = Path(__file__).resolve().parent.parent / "output"
DEFAULT_MAX_ATTEMPTS = 400
DEFAULT_PARTICIPANT_TARGET = 10
TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class AppSettings:
    data_dir: Path = DEFAULT_DATA_DIR
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    allow_reciprocal: bool = False
    participant_target: int = DEFAULT_PARTICIPANT_TARGET
    strict_history: bool = False
    super_secret: bool = False

    @property
    def store_path(self) -> Path:
        return self.data_dir / "exchange.json"


def _env_bool(key: str, default: bool = False) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in TRUTHY


def _env_positive_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


def load_app_settings_from_env() -> AppSettings:
    load_dotenv()  # no-op for keys already in the environment

    data_dir = os.getenv("GIFTEXCHANGE_DATA_DIR", "").strip()
    return AppSettings(
        data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
        max_attempts=_env_positive_int("GIFTEXCHANGE_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
        allow_reciprocal=_env_bool("GIFTEXCHANGE_ALLOW_RECIPROCAL"),
        participant_target=_env_positive_int("GIFTEXCHANGE_PARTICIPANT_TARGET", DEFAULT_PARTICIPANT_TARGET),
        strict_history=_env_bool("GIFTEXCHANGE_STRICT_HISTORY"),
        super_secret=_env_bool("SuperSecret"),
    )
