# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tests for traffic spec loading and query construction"""

import json

import pytest

from conftest import WINDOW
from cloudwatch_account_images.core.models import AccountConfig, MetricSpecTemplate
from cloudwatch_account_images.core.traffic import (
    build_queries,
    load_traffic_spec,
    render_template,
)
from cloudwatch_account_images.errors import ConfigError

ACCOUNT = AccountConfig('ItemDPP', '111111111111', 'us-east-1')


def write_json(tmp_path, data, name='traffic.json'):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding='utf-8')
    return path


def test_load_object_entries(traffic_json):
    templates = load_traffic_spec(traffic_json)

    assert templates == [MetricSpecTemplate(
        metric_name='RetryCount',
        namespace_template='{{NAMESPACE}}',
        dimension_template={'Region': '{{REGION}}'},
        stat='Sum',
    )]


def test_load_widget_rows_with_repeat_placeholders(tmp_path):
    path = write_json(tmp_path, {
        'stat': 'Maximum',
        'metrics': [
            ['{{NAMESPACE}}', 'ErrorCount', 'Region', '{{REGION}}', {'label': 'Errors'}],
            ['.', 'ThrottleCount', '.', '.', {'stat': 'Sum'}],
        ],
    })

    errors, throttles = load_traffic_spec(path)

    assert errors.metric_name == 'ErrorCount'
    assert errors.label == 'Errors'
    assert errors.stat == 'Maximum'
    assert throttles.namespace_template == '{{NAMESPACE}}'
    assert throttles.dimension_template == {'Region': '{{REGION}}'}
    assert throttles.stat == 'Sum'


def test_load_top_level_list(tmp_path):
    path = write_json(tmp_path, [{'metric_name': 'RetryCount'}])

    (template,) = load_traffic_spec(path)

    assert template.namespace_template == '{{NAMESPACE}}'
    assert template.dimension_template == {}


def test_load_yaml(tmp_path):
    path = tmp_path / 'traffic.yml'
    path.write_text(
        'metrics:\n'
        '  - metric_name: RetryCount\n'
        '    namespace: "{{NAMESPACE}}"\n'
        '    dimensions:\n'
        '      Account: "{{ACCOUNT_ID}}"\n',
        encoding='utf-8',
    )

    (template,) = load_traffic_spec(path)

    assert template.dimension_template == {'Account': '{{ACCOUNT_ID}}'}


@pytest.mark.parametrize('data', [
    {'metrics': []},
    {'nothing': 1},
    {'metrics': [{'namespace': 'X'}]},
    {'metrics': [42]},
    {'metrics': [['OnlyNamespace']]},
    {'metrics': [['NS', 'Metric', 'DanglingDimension']]},
    {'metrics': [['.', 'Metric']]},
])
def test_load_rejects_bad_specs(tmp_path, data):
    with pytest.raises(ConfigError):
        load_traffic_spec(write_json(tmp_path, data))


def test_load_rejects_malformed_json(tmp_path):
    path = tmp_path / 'traffic.json'
    path.write_text('{"metrics": [', encoding='utf-8')

    with pytest.raises(ConfigError, match='malformed'):
        load_traffic_spec(path)


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigError, match='Cannot read'):
        load_traffic_spec(tmp_path / 'missing.json')


def test_render_template_placeholders():
    text = '{{NAMESPACE}}/{{REGION}}/{{ACCOUNT_ID}}/{{PERIOD}}'
    assert render_template(text, ACCOUNT, 300) == 'ItemDPP/us-east-1/111111111111/300'


def test_render_template_unknown_placeholder():
    with pytest.raises(ConfigError):
        render_template('{{STAGE}}', ACCOUNT, 300)


def test_build_queries_account_major_with_shared_window():
    other = AccountConfig('Other', '222222222222', 'eu-west-1')
    templates = [
        MetricSpecTemplate('RetryCount', dimension_template={'Region': '{{REGION}}'}),
        MetricSpecTemplate('ErrorCount', namespace_template='AWS/Lambda', stat='Average', label='Errors'),
    ]

    queries = build_queries([ACCOUNT, other], templates, 3600, WINDOW)

    assert [(q.account.account_id, q.metric_name) for q in queries] == [
        ('111111111111', 'RetryCount'),
        ('111111111111', 'ErrorCount'),
        ('222222222222', 'RetryCount'),
        ('222222222222', 'ErrorCount'),
    ]
    assert queries[2].namespace == 'Other'
    assert queries[2].dimensions == (('Region', 'eu-west-1'),)
    # Queries are immutable values
    assert len(set(queries)) == len(queries)
    assert queries[1].namespace == 'AWS/Lambda'
    assert queries[1].display_name == 'Errors'
    assert all(q.window is WINDOW for q in queries)
    assert all(q.period_seconds == 3600 for q in queries)


def test_build_queries_no_accounts():
    assert build_queries([], [MetricSpecTemplate('RetryCount')], 60, WINDOW) == []
