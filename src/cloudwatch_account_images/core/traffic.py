# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Traffic spec loading and per-account metric query construction

A traffic spec lists the metrics to chart for every account. Entries come in
two shapes, which may be mixed:

    {"metrics": [
        {"metric_name": "RetryCount", "namespace": "{{NAMESPACE}}",
         "dimensions": {"Region": "{{REGION}}"}, "stat": "Sum"},
        ["{{NAMESPACE}}", "ErrorCount", "Region", "{{REGION}}", {"label": "Errors"}],
        [".", "ThrottleCount", ".", "."]
    ]}

Array entries follow the CloudWatch dashboard widget layout: namespace,
metric name, then dimension name/value pairs and an optional options object.
A "." repeats the previous array entry's value at the same position.
"""

import json
import logging
from pathlib import Path
from typing import List, Sequence

import yaml
from jinja2 import Environment, StrictUndefined, TemplateError

from cloudwatch_account_images.core.models import (
    AccountConfig,
    MetricQuery,
    MetricSpecTemplate,
    TimeWindow,
)
from cloudwatch_account_images.errors import ConfigError
from cloudwatch_account_images.utils.yaml_handler import load_yaml

logger = logging.getLogger(__name__)

_jinja_env = Environment(undefined=StrictUndefined, autoescape=False)


def load_traffic_spec(filepath) -> List[MetricSpecTemplate]:
    """Load metric templates from a JSON (or .yml/.yaml) traffic spec

    Raises:
        ConfigError: If the file is unreadable, malformed or defines no metrics
    """
    path = Path(filepath)
    try:
        if path.suffix.lower() in ('.yml', '.yaml'):
            data = load_yaml(path)
        else:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read traffic spec {filepath}: {e}") from e
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"Traffic spec {filepath} is malformed: {e}") from e

    default_stat = 'Sum'
    if isinstance(data, dict):
        default_stat = data.get('stat', default_stat)
        entries = data.get('metrics')
    else:
        entries = data

    if not isinstance(entries, list) or not entries:
        raise ConfigError(f"Traffic spec {filepath} must define a non-empty 'metrics' list")

    templates = []
    previous_row = None
    for i, entry in enumerate(entries, 1):
        if isinstance(entry, dict):
            templates.append(_template_from_object(entry, default_stat, i))
        elif isinstance(entry, list):
            row = _expand_row(entry, previous_row, i)
            templates.append(_template_from_row(row, default_stat, i))
            previous_row = row
        else:
            raise ConfigError(f"Traffic spec entry #{i} must be an object or an array")

    logger.debug(f"Loaded {len(templates)} metric templates from {filepath}")
    return templates


def _template_from_object(entry, default_stat, index):
    metric_name = entry.get('metric_name') or entry.get('MetricName')
    if not metric_name:
        raise ConfigError(f"Traffic spec entry #{index} has no metric_name")
    dimensions = entry.get('dimensions', {})
    if not isinstance(dimensions, dict):
        raise ConfigError(f"Traffic spec entry #{index}: 'dimensions' must be an object")
    return MetricSpecTemplate(
        metric_name=str(metric_name),
        namespace_template=str(entry.get('namespace', '{{NAMESPACE}}')),
        dimension_template={str(k): str(v) for k, v in dimensions.items()},
        stat=str(entry.get('stat', default_stat)),
        label=entry.get('label'),
    )


def _expand_row(entry, previous_row, index):
    """Replace '.' placeholders with the previous row's values"""
    values = entry[:-1] if entry and isinstance(entry[-1], dict) else entry
    options = entry[-1] if len(values) < len(entry) else {}

    row = []
    for pos, value in enumerate(values):
        if value == '.':
            if previous_row is None or pos >= len(previous_row[0]):
                raise ConfigError(f"Traffic spec entry #{index}: '.' at position {pos} has nothing to repeat")
            value = previous_row[0][pos]
        row.append(str(value))
    return row, options


def _template_from_row(row, default_stat, index):
    values, options = row
    if len(values) < 2 or len(values) % 2 != 0:
        raise ConfigError(
            f"Traffic spec entry #{index} must be [namespace, metric_name, name, value, ...]"
        )
    namespace, metric_name = values[0], values[1]
    pairs = values[2:]
    return MetricSpecTemplate(
        metric_name=metric_name,
        namespace_template=namespace,
        dimension_template=dict(zip(pairs[0::2], pairs[1::2])),
        stat=str(options.get('stat', default_stat)),
        label=options.get('label'),
    )


def render_template(text: str, account: AccountConfig, period_seconds: int) -> str:
    """Fill {{NAMESPACE}}, {{REGION}}, {{ACCOUNT_ID}} and {{PERIOD}} for one account"""
    try:
        return _jinja_env.from_string(text).render(
            NAMESPACE=account.namespace,
            REGION=account.region,
            ACCOUNT_ID=account.account_id,
            PERIOD=period_seconds,
        )
    except TemplateError as e:
        raise ConfigError(f"Cannot render template '{text}' for {account}: {e}") from e


def build_queries(
    accounts: Sequence[AccountConfig],
    templates: Sequence[MetricSpecTemplate],
    period_seconds: int,
    window: TimeWindow,
) -> List[MetricQuery]:
    """Build one query per (account, template), account-major

    Every query shares the same ``window`` object.
    """
    queries = []
    for account in accounts:
        for template in templates:
            dimensions = tuple(
                (render_template(name, account, period_seconds), render_template(value, account, period_seconds))
                for name, value in template.dimension_template.items()
            )
            queries.append(MetricQuery(
                account=account,
                metric_name=render_template(template.metric_name, account, period_seconds),
                namespace=render_template(template.namespace_template, account, period_seconds),
                dimensions=dimensions,
                period_seconds=period_seconds,
                window=window,
                stat=template.stat,
                label=template.label,
            ))
    return queries
