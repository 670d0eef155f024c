# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Grouping of fetch results by account"""

from collections import OrderedDict
from typing import Dict, List, Sequence

import numpy as np

from cloudwatch_account_images.core.models import AccountConfig, FetchResult, SeriesBundle


def assemble(accounts: Sequence[AccountConfig], results: Sequence[FetchResult]) -> SeriesBundle:
    """Group results by account into a SeriesBundle

    Every account in ``accounts`` becomes a key, even one whose queries all
    failed or which had no queries at all, so it can still be rendered as
    "no data". Keys follow the account order; results keep their input order.

    Raises:
        ValueError: If a result belongs to an account outside ``accounts``
    """
    groups: Dict[AccountConfig, List[FetchResult]] = OrderedDict()
    for account in accounts:
        groups.setdefault(account, [])

    for result in results:
        if result.account not in groups:
            raise ValueError(f"Result for {result.account} does not belong to the selected accounts")
        groups[result.account].append(result)

    return SeriesBundle(groups)


def summarize(bundle: SeriesBundle) -> List[Dict]:
    """Per (account, metric) statistics for the run summary

    Returns:
        One dict per result with account fields, status and, for successful
        results, datapoints/sum/max/avg of the series values
    """
    rows = []
    for account, results in bundle.items():
        for result in results:
            row = {
                'namespace': account.namespace,
                'account_id': account.account_id,
                'region': account.region,
                'metric': result.query.display_name,
                'status': 'ok' if result.ok else result.error_kind.value,
                'attempts': result.attempts,
                'datapoints': 0,
                'sum': None,
                'max': None,
                'avg': None,
                'message': '' if result.ok else result.message,
            }
            if result.ok and result.series:
                values = np.array([value for _, value in result.series], dtype=float)
                row.update({
                    'datapoints': int(values.size),
                    'sum': float(np.sum(values)),
                    'max': float(np.max(values)),
                    'avg': float(np.mean(values)),
                })
            rows.append(row)
    return rows
