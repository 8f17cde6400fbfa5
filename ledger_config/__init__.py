"""
ledger_config -- single public entrypoint for posting policy.

Responsibility:
    ``get_active_policy()`` returns the frozen ``PostingPolicy`` the engine
    runs under.  By default that is the bundled
    ``policies/ledger_policy.yaml``; the ``LEDGER_POLICY_PATH`` environment
    variable points it at another document.

Architecture position:
    Configuration.  Sits beside ``ledger_kernel`` and below
    ``ledger_services`` / ``ledger_modules``.  Kernel services accept a
    policy argument and fall back to this entrypoint.

Audit relevance:
    Every policy load emits a ``ledger_policy_loaded`` log record carrying
    the version and checksum of the document in force.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from ledger_config.loader import load_policy
from ledger_config.schema import PostingPolicy

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_POLICY_PATH = Path(__file__).parent / "policies" / "ledger_policy.yaml"

POLICY_PATH_ENV = "LEDGER_POLICY_PATH"


@lru_cache(maxsize=8)
def _load_cached(path: str) -> PostingPolicy:
    policy = load_policy(path)
    _logger.info(
        "ledger_policy_loaded",
        extra={
            "policy_path": path,
            "policy_version": policy.version,
            "checksum": policy.checksum,
        },
    )
    return policy


def get_active_policy() -> PostingPolicy:
    """Return the policy in force (bundled file unless overridden by env)."""
    path = os.environ.get(POLICY_PATH_ENV) or str(DEFAULT_POLICY_PATH)
    return _load_cached(path)


def clear_policy_cache() -> None:
    """Forget previously loaded policies (tests that edit policy files)."""
    _load_cached.cache_clear()


__all__ = [
    "DEFAULT_POLICY_PATH",
    "POLICY_PATH_ENV",
    "PostingPolicy",
    "clear_policy_cache",
    "get_active_policy",
    "load_policy",
]
