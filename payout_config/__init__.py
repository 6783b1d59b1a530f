"""
payout_config -- runtime settings and the default payout policy.

Responsibility:
    Reads ``defaults.yaml`` (or a given file) with PyYAML, applies
    environment overrides, and wires the kernel at process start:
    logging, engine, immutability listeners.

Architecture position:
    Configuration -- sits above ``payout_kernel``.  The kernel MUST NEVER
    import from ``payout_config``; it receives settings as plain arguments
    and the active policy through a ConfigurationProvider.

Failure modes:
    - ``FileNotFoundError`` / ``yaml.YAMLError`` / ``KeyError`` from the
      loader.
    - ``InvalidPolicyError`` when the YAML policy fails validation.
"""

from __future__ import annotations

import logging
from pathlib import Path

from payout_config.loader import load_yaml_file, parse_policy, parse_settings
from payout_config.schema import PayoutSettings
from payout_kernel.domain.policy import PayoutPolicy, ensure_valid_policy

_logger = logging.getLogger("payout_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

__all__ = [
    "DEFAULTS_PATH",
    "PayoutSettings",
    "bootstrap",
    "build_cipher",
    "load_default_policy",
    "load_settings",
]


def load_settings(path: Path | None = None) -> PayoutSettings:
    """Settings from ``path`` (default ``defaults.yaml``) plus env overrides."""
    settings = parse_settings(load_yaml_file(path or DEFAULTS_PATH))
    _logger.info(
        "payout_settings_loaded",
        extra={
            "source": str(path or DEFAULTS_PATH),
            "lock_timeout_ms": settings.lock_timeout_ms,
            "log_level": settings.log_level,
        },
    )
    return settings


def load_default_policy(path: Path | None = None) -> PayoutPolicy:
    """The validated ``policy`` block of ``path`` (default ``defaults.yaml``)."""
    return ensure_valid_policy(parse_policy(load_yaml_file(path or DEFAULTS_PATH)))


def build_cipher(settings: PayoutSettings):
    """Cipher for payment-method secrets keyed by ``settings.encryption_key``."""
    from payout_kernel.utils.crypto import SensitiveDataCipher

    return SensitiveDataCipher(settings.encryption_key)


def bootstrap(settings: PayoutSettings | None = None, create_schema: bool = False):
    """
    Configure logging and the engine, and register immutability listeners.

    Returns:
        The initialized SQLAlchemy Engine.
    """
    from payout_kernel.db.engine import create_tables, init_engine_from_url
    from payout_kernel.db.immutability import register_immutability_listeners
    from payout_kernel.logging_config import configure_logging

    settings = settings or load_settings()
    configure_logging(level=getattr(logging, settings.log_level, logging.INFO))
    engine = init_engine_from_url(
        settings.database_url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        lock_timeout_ms=settings.lock_timeout_ms,
    )
    register_immutability_listeners()
    if create_schema:
        create_tables()
    return engine
