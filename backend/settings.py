# Cirrus/backend/settings.py
"""Environment-based settings for the Cirrus backend.

Values come from the process environment, optionally seeded from a
``.env`` file in the working directory.
"""


from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple

from dotenv import load_dotenv


DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Attributes:
        backend_port: HTTP port for ``python app.py``.
        debug: Flask debug mode.
        log_level: Minimum log level name.
        log_format: ``json`` or ``console``.
        cors_origins: Dashboard origins allowed to call the API directly.
        default_environment_id: Environment used when a request omits one.
    """
    backend_port: int = 8000
    debug: bool = False
    log_level: str = "info"
    log_format: str = "json"
    cors_origins: Tuple[str, ...] = tuple(DEFAULT_CORS_ORIGINS.split(","))
    default_environment_id: str = "production"


def load_settings() -> Settings:
    """Read :class:`Settings` from the environment (after ``load_dotenv``)."""
    load_dotenv()

    origins = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)

    return Settings(
        backend_port=int(os.getenv("BACKEND_PORT", "8000")),
        debug=os.getenv("DEBUG", "false").lower() == "true",
        log_level=os.getenv("LOG_LEVEL", "info"),
        log_format=os.getenv("LOG_FORMAT", "json"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        default_environment_id=os.getenv("DEFAULT_ENVIRONMENT_ID", "production"),
    )
