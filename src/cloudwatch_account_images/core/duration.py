# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Relative time expressions such as '4320H' resolved against a fixed 'now'"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from cloudwatch_account_images.core.models import TimeWindow
from cloudwatch_account_images.errors import InvalidDuration

UNIT_LENGTHS = {
    'H': timedelta(hours=1),
    'D': timedelta(days=1),
}

_DURATION_RE = re.compile(r'^\s*([+-]?\d+)\s*([A-Za-z]+)\s*$')


@dataclass(frozen=True)
class DurationSpec:
    magnitude: int
    unit: str

    def __str__(self):
        return f"{self.magnitude}{self.unit}"


def parse_duration(text: str) -> DurationSpec:
    """Parse '<magnitude><unit>' (e.g. '4320H', '30d')

    Raises:
        InvalidDuration: unparseable text, unknown unit or non-positive magnitude
    """
    match = _DURATION_RE.match(text or '')
    if not match:
        raise InvalidDuration(f"Invalid duration '{text}': expected <number><unit>, e.g. 4320H")

    spec = DurationSpec(int(match.group(1)), match.group(2).upper())
    _validate(spec)
    return spec


def _validate(spec: DurationSpec) -> timedelta:
    unit_length = UNIT_LENGTHS.get(spec.unit)
    if unit_length is None:
        supported = ', '.join(sorted(UNIT_LENGTHS))
        raise InvalidDuration(f"Unknown duration unit '{spec.unit}' (supported: {supported})")
    if spec.magnitude <= 0:
        raise InvalidDuration(f"Duration must be positive, got {spec}")
    return unit_length


def resolve_start(now: datetime, spec: DurationSpec) -> datetime:
    """Return now - magnitude * unit_length"""
    return now - spec.magnitude * _validate(spec)


def resolve_window(now: datetime, spec: DurationSpec) -> TimeWindow:
    """Resolve the [start, now] window shared by every query of a run"""
    return TimeWindow(start=resolve_start(now, spec), end=now)


def align_to_period(dt: datetime, period_seconds: int) -> datetime:
    """Round an aware datetime down to a multiple of period_seconds since the epoch

    03:08:23 becomes 03:08:00 with a 60s period, 03:05:00 with 300s and
    03:00:00 with 3600s.
    """
    epoch = int(dt.timestamp())
    return datetime.fromtimestamp(epoch - epoch % period_seconds, tz=dt.tzinfo)
