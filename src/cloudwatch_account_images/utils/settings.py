# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Fetch settings: defaults, environment overrides, CLI overrides."""

import os
from dataclasses import dataclass, fields, replace

from cloudwatch_account_images.errors import ConfigError

ENV_PREFIX = "CWAI_"

# Env var suffix -> settings field
ENV_VARS = {
    "MAX_WORKERS": "max_workers",
    "MAX_RETRIES": "max_retries",
    "BASE_DELAY": "base_delay",
    "MAX_DELAY": "max_delay",
    "JITTER": "jitter",
    "TIMEOUT": "timeout_seconds",
}


@dataclass(frozen=True)
class FetchSettings:
    """Orchestrator tuning knobs

    max_workers stays well under CloudWatch's GetMetricData rate limits.
    max_retries counts attempts after the first one.
    """

    max_workers: int = 10
    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.5
    timeout_seconds: float = 30.0

    def __post_init__(self):
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ConfigError("Backoff delays and jitter must not be negative")
        if self.timeout_seconds <= 0:
            raise ConfigError(f"timeout must be > 0, got {self.timeout_seconds}")

    def with_overrides(self, **overrides) -> "FetchSettings":
        """Return a copy with every non-None override applied"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_settings(environ=None) -> FetchSettings:
    """Build settings from defaults plus CWAI_* environment variables."""
    environ = os.environ if environ is None else environ
    types = {f.name: f.type for f in fields(FetchSettings)}

    overrides = {}
    for suffix, name in ENV_VARS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw is None or raw == "":
            continue
        cast = int if types[name] in (int, "int") else float
        try:
            overrides[name] = cast(raw)
        except ValueError as e:
            raise ConfigError(f"{ENV_PREFIX}{suffix}={raw!r} is not a valid {cast.__name__}") from e

    return FetchSettings(**overrides)
