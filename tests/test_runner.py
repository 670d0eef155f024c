# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""End-to-end tests: accounts -> selection -> fetch -> bundle -> render, and the CLI"""

import csv
from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeRemote, FakeRenderer
from cloudwatch_account_images.__main__ import main
from cloudwatch_account_images.core.accounts import load_accounts, select_accounts
from cloudwatch_account_images.core.duration import parse_duration, resolve_window
from cloudwatch_account_images.core.models import ErrorKind, Failure, Success
from cloudwatch_account_images.core.runner import ImageRunner
from cloudwatch_account_images.core.traffic import load_traffic_spec
from cloudwatch_account_images.errors import NotFoundError
from cloudwatch_account_images.utils.settings import FetchSettings

T = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
FAST = FetchSettings(max_workers=4, max_retries=2, base_delay=0, max_delay=0, jitter=0)


def test_end_to_end_scenario(accounts_toml, traffic_json, tmp_path):
    accounts = load_accounts(accounts_toml)
    selected = select_accounts(accounts, 'ItemDPP')
    assert [a.account_id for a in selected] == ['111111111111', '333333333333']

    window = resolve_window(T, parse_duration('2H'))
    assert window.start == T - timedelta(hours=2)

    remote = FakeRemote({('333333333333', 'RetryCount'): [NotFoundError('metric not found')]})
    renderer = FakeRenderer()
    runner = ImageRunner(remote, renderer, FAST, summary_dir=str(tmp_path / 'out'))

    summary = runner.run(selected, load_traffic_spec(traffic_json), 3600, window)

    bundle = summary.bundle
    assert list(bundle) == selected
    (ok,) = bundle[selected[0]]
    (failed,) = bundle[selected[1]]
    assert isinstance(ok, Success) and ok.series
    assert isinstance(failed, Failure) and failed.error_kind == ErrorKind.NOT_FOUND
    assert [account for account, _ in renderer.rendered] == selected
    assert summary.failed_queries == 1
    assert summary.render_errors == {}

    with open(summary.summary_file, newline="", encoding="utf-8") as f:
        headers, *rows = list(csv.reader(f))
    assert headers[:5] == ['namespace', 'account_id', 'region', 'metric', 'status']
    assert [row[4] for row in rows] == ['ok', 'NotFound']


def test_render_error_does_not_stop_other_accounts(accounts_toml, traffic_json):
    accounts = load_accounts(accounts_toml)
    renderer = FakeRenderer(fail_for={'222222222222'})
    runner = ImageRunner(FakeRemote(), renderer, FAST)

    summary = runner.run(accounts, load_traffic_spec(traffic_json), 3600, resolve_window(T, parse_duration('2H')))

    assert [a.account_id for a, _ in renderer.rendered] == ['111111111111', '333333333333']
    assert list(summary.render_errors) == [accounts[1]]
    assert summary.summary_file is None


def test_zero_accounts_renders_nothing(traffic_json):
    remote = FakeRemote()
    renderer = FakeRenderer()

    summary = ImageRunner(remote, renderer, FAST).run(
        [], load_traffic_spec(traffic_json), 3600, resolve_window(T, parse_duration('2H'))
    )

    assert len(summary.bundle) == 0
    assert renderer.rendered == []
    assert remote.calls == []


@pytest.fixture
def patched_cli(monkeypatch, tmp_path):
    """Swap the CloudWatch client and chart renderer used by the CLI for fakes"""
    remote = FakeRemote({('333333333333', 'RetryCount'): [NotFoundError('metric not found')]})
    renderers = []

    def make_renderer(output_dir, title='metric', start_label=''):
        renderer = FakeRenderer()
        renderers.append(renderer)
        return renderer

    monkeypatch.setattr('cloudwatch_account_images.aws.cloudwatch.CloudWatchMetricsClient', lambda: remote)
    monkeypatch.setattr('cloudwatch_account_images.core.chart_renderer.ChartRenderer', make_renderer)
    return remote, renderers


def test_cli_images_exits_zero_with_partial_failures(patched_cli, accounts_toml, traffic_json, tmp_path):
    remote, renderers = patched_cli

    main([
        'images', '--period', '3600', '--pattern', 'ItemDPP', '-s', '2H',
        '-o', str(tmp_path / 'out'), '--max-retries', '0',
        str(traffic_json), str(accounts_toml),
    ])

    (renderer,) = renderers
    assert [a.account_id for a, _ in renderer.rendered] == ['111111111111', '333333333333']
    assert sorted(remote.calls) == [('111111111111', 'RetryCount'), ('333333333333', 'RetryCount')]


def test_cli_images_no_matching_accounts(patched_cli, accounts_toml, traffic_json, tmp_path):
    remote, renderers = patched_cli

    main(['images', '--pattern', 'Nope', '-o', str(tmp_path / 'out'), str(traffic_json), str(accounts_toml)])

    assert renderers == []
    assert remote.calls == []


@pytest.mark.parametrize('extra_args', [
    ['-s', '0H'],
    ['-s', 'forever'],
    ['--period', '0'],
    ['--max-workers', '0'],
])
def test_cli_images_fatal_setup_errors(patched_cli, accounts_toml, traffic_json, extra_args):
    remote, _ = patched_cli

    with pytest.raises(SystemExit) as excinfo:
        main(['images', *extra_args, str(traffic_json), str(accounts_toml)])

    assert excinfo.value.code == 1
    assert remote.calls == []


def test_cli_images_bad_accounts_file(patched_cli, traffic_json, tmp_path):
    remote, _ = patched_cli

    with pytest.raises(SystemExit) as excinfo:
        main(['images', str(traffic_json), str(tmp_path / 'missing.toml')])

    assert excinfo.value.code == 1
    assert remote.calls == []


def test_cli_config_prints_accounts(accounts_toml, capsys):
    main(['config', str(accounts_toml), '--pattern', 'Other'])

    out = capsys.readouterr().out
    assert 'account_id=222222222222' in out
    assert '111111111111' not in out


def test_cli_without_command_prints_help(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main([])

    assert excinfo.value.code == 1
