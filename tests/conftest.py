# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures: a scriptable remote metrics API and sample data"""

import os
import sys
from datetime import datetime, timedelta, timezone
from threading import Lock

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from cloudwatch_account_images.core.models import AccountConfig, MetricQuery, TimeWindow

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
WINDOW = TimeWindow(start=NOW - timedelta(hours=2), end=NOW)


def make_series(base=0.0, points=3):
    return tuple((WINDOW.start + timedelta(hours=i), base + i) for i in range(points))


def make_query(account_id='111111111111', metric='RetryCount', namespace='ItemDPP', region='us-east-1'):
    account = AccountConfig(namespace, account_id, region)
    return MetricQuery(
        account=account,
        metric_name=metric,
        namespace=namespace,
        dimensions={'Region': region},
        period_seconds=3600,
        window=WINDOW,
    )


class FakeRemote:
    """Remote metrics API driven by a script

    ``script`` maps (account_id, metric_name) to a list of outcomes consumed
    one per call; an outcome is an exception instance (raised) or a series
    (returned). The last outcome repeats once the list is exhausted.
    Unscripted queries return ``default_series``.
    """

    def __init__(self, script=None, default_series=None, on_call=None):
        self.script = script or {}
        self.default_series = default_series if default_series is not None else make_series()
        self.on_call = on_call
        self.calls = []
        self._lock = Lock()

    def fetch(self, query, timeout):
        key = (query.account.account_id, query.metric_name)
        with self._lock:
            self.calls.append(key)
            outcomes = self.script.get(key)
            outcome = self.default_series
            if outcomes:
                outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if self.on_call:
            self.on_call(query)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def call_count(self, account_id, metric='RetryCount'):
        return self.calls.count((account_id, metric))


class FakeRenderer:
    def __init__(self, fail_for=()):
        self.rendered = []
        self.fail_for = set(fail_for)

    def render(self, account, results):
        from cloudwatch_account_images.errors import RenderError

        if account.account_id in self.fail_for:
            raise RenderError(f"cannot draw {account}")
        self.rendered.append((account, tuple(results)))
        return f"/tmp/{account.account_id}.png"


@pytest.fixture
def accounts_toml(tmp_path):
    path = tmp_path / 'accounts.toml'
    path.write_text(
        '[[account]]\n'
        'namespace = "ItemDPP"\n'
        'account_id = "111111111111"\n'
        'region = "us-east-1"\n'
        '\n'
        '[[account]]\n'
        'namespace = "Other"\n'
        'account_id = "222222222222"\n'
        'region = "eu-west-1"\n'
        '\n'
        '[[account]]\n'
        'namespace = "ItemDPP"\n'
        'account_id = "333333333333"\n'
        'region = "us-west-2"\n',
        encoding='utf-8',
    )
    return path


@pytest.fixture
def traffic_json(tmp_path):
    path = tmp_path / 'traffic.json'
    path.write_text(
        '{"metrics": [{"metric_name": "RetryCount", "namespace": "{{NAMESPACE}}",'
        ' "dimensions": {"Region": "{{REGION}}"}}]}',
        encoding='utf-8',
    )
    return path
