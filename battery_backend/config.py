import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


@dataclass
class Settings:
    cors_origins: List[str]
    prediction_delay: float = 1.5
    generation_delay: float = 2.0
    random_seed: Optional[int] = None
    log_level: str = "INFO"
    seed_dataset: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        seed = os.environ.get('RANDOM_SEED')
        return cls(
            cors_origins=os.environ.get('CORS_ORIGINS', '*').split(','),
            prediction_delay=_env_float('PREDICTION_DELAY_SECONDS', 1.5),
            generation_delay=_env_float('GENERATION_DELAY_SECONDS', 2.0),
            random_seed=int(seed) if seed else None,
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
            seed_dataset=_env_bool('SEED_DATASET', True),
        )
