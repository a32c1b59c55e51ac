"""
Runtime configuration and logging setup.

Settings come from environment variables; every value has a default so the
API starts with no environment at all.
"""

import logging
import os
import sys

from pydantic import BaseModel, Field

LOGGER_NAME = "storefront"

_TRUTHY = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


class Settings(BaseModel):
    host: str = Field("0.0.0.0", description="Bind address")
    port: int = Field(3000, ge=1, le=65535, description="Listen port")
    log_level: str = Field("INFO", description="Level for the storefront logger")
    seed_sample_data: bool = Field(True, description="Populate demo rows on startup")
    atomic_orders: bool = Field(
        False,
        description="Validate every order line before touching stock",
    )

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", 3000)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            seed_sample_data=_env_flag("SEED_SAMPLE_DATA", True),
            atomic_orders=_env_flag("ATOMIC_ORDERS", False),
        )


logger = logging.getLogger(LOGGER_NAME)


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stderr handler to the storefront logger (once) and set its level."""
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter(
                "[storefront] %(asctime)s %(levelname)s: %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        logger.addHandler(handler)
    return logger
