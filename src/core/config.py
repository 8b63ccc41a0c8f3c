"""
Runtime settings, read from the environment (and a local .env file).
"""
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from models import DatabaseType

_TRUTHY = {"1", "true", "yes", "on"}


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _seconds(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(float(raw), 0.0)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    backend: str = "mock"
    model: str = "gpt-4o"
    database: DatabaseType = DatabaseType.SQL
    seed_demo: bool = True
    preserve_state_on_regenerate: bool = False
    generation_delay: float = 1.5
    execution_delay: float = 0.8
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            load_dotenv()
            env = os.environ

        backend = env.get("QUERY_DRAFTER_BACKEND", cls.backend).strip().lower()
        if backend not in ("mock", "openai"):
            raise ValueError(f"QUERY_DRAFTER_BACKEND must be 'mock' or 'openai', got {backend!r}")

        raw_db = env.get("QUERY_DRAFTER_DATABASE", cls.database.value).strip()
        by_name = {d.value.lower(): d for d in DatabaseType}
        if raw_db.lower() not in by_name:
            raise ValueError(f"QUERY_DRAFTER_DATABASE must be one of {[d.value for d in DatabaseType]}")

        return cls(
            backend=backend,
            model=env.get("QUERY_DRAFTER_MODEL", cls.model),
            database=by_name[raw_db.lower()],
            seed_demo=_flag(env, "QUERY_DRAFTER_SEED_DEMO", cls.seed_demo),
            preserve_state_on_regenerate=_flag(
                env, "QUERY_DRAFTER_PRESERVE_ON_REGENERATE", cls.preserve_state_on_regenerate),
            generation_delay=_seconds(env, "QUERY_DRAFTER_GENERATION_DELAY", cls.generation_delay),
            execution_delay=_seconds(env, "QUERY_DRAFTER_EXECUTION_DELAY", cls.execution_delay),
            log_level=env.get("QUERY_DRAFTER_LOG_LEVEL", cls.log_level),
            log_file=env.get("QUERY_DRAFTER_LOG_FILE") or None,
        )
