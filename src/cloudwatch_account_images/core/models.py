# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Data model for account selection, metric queries and fetched series"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

Datapoint = Tuple[datetime, float]


@dataclass(frozen=True)
class AccountConfig:
    """One account/region pair tagged with the namespace it belongs to"""

    namespace: str
    account_id: str
    region: str

    @property
    def identity(self) -> Tuple[str, str, str]:
        return (self.namespace, self.account_id, self.region)

    def __str__(self):
        return f"{self.namespace} ({self.account_id}/{self.region})"


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    @property
    def seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class MetricSpecTemplate:
    """A metric to query for every account, before placeholders are filled in

    ``namespace_template`` and the values of ``dimension_template`` may use
    ``{{NAMESPACE}}``, ``{{REGION}}``, ``{{ACCOUNT_ID}}`` and ``{{PERIOD}}``.
    """

    metric_name: str
    namespace_template: str = "{{NAMESPACE}}"
    dimension_template: Mapping[str, str] = field(default_factory=dict)
    stat: str = "Sum"
    label: Optional[str] = None


@dataclass(frozen=True)
class MetricQuery:
    """A fully rendered metric query for one account

    ``dimensions`` may be given as a mapping or as (name, value) pairs and is
    stored as a tuple of pairs, so queries stay immutable and hashable.
    """

    account: AccountConfig
    metric_name: str
    namespace: str
    dimensions: Tuple[Tuple[str, str], ...]
    period_seconds: int
    window: TimeWindow
    stat: str = "Sum"
    label: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'dimensions', tuple(dict(self.dimensions).items()))

    @property
    def display_name(self) -> str:
        return self.label or self.metric_name


class ErrorKind(str, Enum):
    THROTTLING_EXHAUSTED = "ThrottlingExhausted"
    TIMEOUT_EXHAUSTED = "TimeoutExhausted"
    AUTHORIZATION = "Authorization"
    NOT_FOUND = "NotFound"
    CANCELLED = "Cancelled"
    UNEXPECTED = "Unexpected"


@dataclass(frozen=True)
class Success:
    query: MetricQuery
    series: Tuple[Datapoint, ...]
    attempts: int = 1
    ok = True

    @property
    def account(self) -> AccountConfig:
        return self.query.account

    @property
    def metric_name(self) -> str:
        return self.query.metric_name


@dataclass(frozen=True)
class Failure:
    query: MetricQuery
    error_kind: ErrorKind
    message: str
    attempts: int = 0
    ok = False

    @property
    def account(self) -> AccountConfig:
        return self.query.account

    @property
    def metric_name(self) -> str:
        return self.query.metric_name


FetchResult = Union[Success, Failure]


class SeriesBundle(Mapping):
    """Fetch results grouped by account, in account selection order

    Read-only once built; the renderer receives it as a whole.
    """

    def __init__(self, groups: Dict[AccountConfig, List[FetchResult]]):
        self._groups = MappingProxyType(
            {account: tuple(results) for account, results in groups.items()}
        )

    def __getitem__(self, account: AccountConfig) -> Tuple[FetchResult, ...]:
        return self._groups[account]

    def __iter__(self) -> Iterator[AccountConfig]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def __repr__(self):
        return f"SeriesBundle({dict(self._groups)!r})"

    def failures(self) -> List[Failure]:
        return [r for results in self._groups.values() for r in results if not r.ok]

    def has_data(self, account: AccountConfig) -> bool:
        return any(r.ok and r.series for r in self._groups[account])
