"""
Runtime settings schema.

``PayoutSettings`` is the parsed, frozen form of the ``database``,
``security`` and ``logging`` blocks of a settings YAML file after
environment overrides.  The ``policy`` block parses into the kernel's
``PayoutPolicy`` instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PayoutSettings:
    database_url: str
    lock_timeout_ms: int = 5000
    pool_size: int = 20
    echo_sql: bool = False
    encryption_key: str = field(default="", repr=False)
    log_level: str = "INFO"
