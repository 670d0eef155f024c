# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Run summary: per-metric CSV report and failure log"""

import logging
import os
from datetime import datetime
from typing import Dict

from cloudwatch_account_images.core.assembler import summarize
from cloudwatch_account_images.core.models import AccountConfig, SeriesBundle
from cloudwatch_account_images.utils.csv_handler import write_csv

logger = logging.getLogger(__name__)

SUMMARY_HEADERS = [
    'namespace', 'account_id', 'region', 'metric', 'status',
    'attempts', 'datapoints', 'sum', 'max', 'avg', 'image', 'message',
]


def write_summary(output_dir, bundle: SeriesBundle, images: Dict[AccountConfig, str],
                  render_errors: Dict[AccountConfig, str]) -> str:
    """Write summary-<timestamp>.csv with one row per fetched metric"""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    os.makedirs(output_dir, exist_ok=True)
    csv_file = os.path.join(output_dir, f"summary-{timestamp}.csv")

    rows = []
    for row in summarize(bundle):
        account = AccountConfig(row['namespace'], row['account_id'], row['region'])
        row['image'] = images.get(account, '')
        if account in render_errors:
            row['message'] = '; '.join(filter(None, [row['message'], render_errors[account]]))
        rows.append(['' if row[h] is None else row[h] for h in SUMMARY_HEADERS])

    write_csv(csv_file, SUMMARY_HEADERS, rows)
    logger.info(f"Generated: {csv_file}")
    return csv_file


def log_failures(bundle: SeriesBundle, render_errors: Dict[AccountConfig, str]):
    """Log which accounts/metrics failed and why"""
    failures = bundle.failures()
    if not failures and not render_errors:
        logger.info("All queries and renders succeeded")
        return

    if failures:
        logger.info(f"\n{len(failures)} metric queries failed:")
        for failure in failures:
            logger.info(f"  {failure.account} {failure.query.display_name}: "
                        f"{failure.error_kind.value} - {failure.message}")
    if render_errors:
        logger.info(f"\n{len(render_errors)} images could not be rendered:")
        for account, message in render_errors.items():
            logger.info(f"  {account}: {message}")
