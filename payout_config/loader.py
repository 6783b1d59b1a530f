"""
Configuration Loader (``payout_config.loader``).

Responsibility
--------------
Loads a settings YAML file and parses it into ``PayoutSettings`` and the
kernel's ``PayoutPolicy``.  Environment variables override the file for
the values that differ per deployment.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Non-integer ``PAYOUT_LOCK_TIMEOUT_MS``  -> ``ValueError``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from payout_config.schema import PayoutSettings
from payout_kernel.domain.policy import PayoutPolicy

ENV_DATABASE_URL = "PAYOUT_DATABASE_URL"
ENV_LOCK_TIMEOUT_MS = "PAYOUT_LOCK_TIMEOUT_MS"
ENV_ENCRYPTION_KEY = "PAYOUT_ENCRYPTION_KEY"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def parse_settings(data: dict[str, Any], environ: Mapping[str, str] | None = None) -> PayoutSettings:
    """Build ``PayoutSettings`` from parsed YAML, then apply env overrides."""
    environ = os.environ if environ is None else environ
    database = data["database"]
    security = data.get("security", {})
    logging_block = data.get("logging", {})

    database_url = environ.get(ENV_DATABASE_URL) or database["url"]
    lock_timeout = environ.get(ENV_LOCK_TIMEOUT_MS) or database.get("lock_timeout_ms", 5000)
    encryption_key = environ.get(ENV_ENCRYPTION_KEY) or security.get("encryption_key", "")

    return PayoutSettings(
        database_url=database_url,
        lock_timeout_ms=int(lock_timeout),
        pool_size=int(database.get("pool_size", 20)),
        echo_sql=bool(database.get("echo", False)),
        encryption_key=encryption_key,
        log_level=str(logging_block.get("level", "INFO")).upper(),
    )


def parse_policy(data: dict[str, Any]) -> PayoutPolicy:
    """Build the kernel ``PayoutPolicy`` from the ``policy`` block."""
    return PayoutPolicy.from_mapping(data["policy"])
