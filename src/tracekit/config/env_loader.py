"""Environment variable file loader with priority-based loading.

Environment-specific .env files are loaded in a fixed priority order so
that tracer limits can be tuned per deployment without code changes.
"""

from enum import Enum
from pathlib import Path

import structlog
from dotenv import load_dotenv

log = structlog.get_logger(__name__)


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


def get_environment() -> Environment:
    """Detect current environment from the TRACEKIT_ENV environment variable.

    Returns:
        Environment enum value.

    Environment variable mapping:
    - "production" or "prod" → Environment.PRODUCTION
    - "staging" or "stage" → Environment.STAGING
    - "test" → Environment.TEST
    - Default → Environment.DEVELOPMENT
    """
    import os  # noqa: PLC0415

    app_env = os.getenv("TRACEKIT_ENV", "").lower()

    if app_env in ("production", "prod"):
        return Environment.PRODUCTION
    elif app_env in ("staging", "stage"):
        return Environment.STAGING
    elif app_env == "test":
        return Environment.TEST
    else:
        return Environment.DEVELOPMENT


def load_env_files(project_root: Path | None = None) -> list[Path]:
    """Load .env files in priority order.

    Priority order (highest to lowest):
    1. `.env.{environment}.local`
    2. `.env.{environment}`
    3. `.env.local`
    4. `.env`

    Variables already present in the process environment are never overridden.

    Args:
        project_root: Directory holding the .env files. Defaults to the
            current working directory.

    Returns:
        The files that were found and loaded, highest priority first.
    """
    if project_root is None:
        project_root = Path.cwd()

    env_name = get_environment().value

    # Highest priority first: load_dotenv never overrides, so the first
    # file to define a variable wins.
    env_files = [
        project_root / f".env.{env_name}.local",
        project_root / f".env.{env_name}",
        project_root / ".env.local",
        project_root / ".env",
    ]

    loaded: list[Path] = []
    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)
            loaded.append(env_file)

    log.debug("env_files_loaded", environment=env_name, files=[str(p) for p in loaded])
    return loaded
