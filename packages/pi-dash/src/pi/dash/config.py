"""Runtime configuration for a pi-dash session."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Callable, Mapping

logger = logging.getLogger(__name__)

ENV_PREFIX = "PI_DASH_"


@dataclass
class Config:
    """Session configuration.

    ``worker_queue_size`` of 0 means the deferred-work queue is unbounded;
    a positive value makes ``defer`` block when the queue is full.
    """

    timer_interval: float = 1.0
    worker_queue_size: int = 0
    poll_interval: float = 0.05
    close_timeout: float = 2.0
    write_log_path: str = ""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        """Build a config from ``PI_DASH_*`` environment variables.

        Malformed values are logged and the default is kept.
        """
        env = os.environ if environ is None else environ
        config = cls()
        _apply(env, "TIMER_INTERVAL", float, config, "timer_interval")
        _apply(env, "QUEUE_SIZE", int, config, "worker_queue_size")
        _apply(env, "POLL_INTERVAL", float, config, "poll_interval")
        _apply(env, "CLOSE_TIMEOUT", float, config, "close_timeout")
        config.write_log_path = env.get(ENV_PREFIX + "WRITE_LOG", config.write_log_path)
        return config


def _apply(
    env: Mapping[str, str],
    suffix: str,
    convert: Callable[[str], float | int],
    config: Config,
    attr: str,
) -> None:
    name = ENV_PREFIX + suffix
    raw = env.get(name)
    if raw is None or raw == "":
        return
    try:
        value = convert(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a valid %s", name, raw, convert.__name__)
        return
    if value < 0:
        logger.warning("Ignoring %s=%r: must not be negative", name, raw)
        return
    setattr(config, attr, value)
