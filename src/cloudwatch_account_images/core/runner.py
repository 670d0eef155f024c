# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Main orchestrator for the per-account image run"""

import logging
from dataclasses import dataclass, field
from threading import Event
from typing import Dict, Optional, Sequence

from cloudwatch_account_images.core.assembler import assemble
from cloudwatch_account_images.core.metrics_fetcher import MetricsFetchOrchestrator
from cloudwatch_account_images.core.models import (
    AccountConfig,
    MetricSpecTemplate,
    SeriesBundle,
    TimeWindow,
)
from cloudwatch_account_images.core.summary import log_failures, write_summary
from cloudwatch_account_images.core.traffic import build_queries
from cloudwatch_account_images.errors import RenderError
from cloudwatch_account_images.utils.settings import FetchSettings

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    bundle: SeriesBundle
    images: Dict[AccountConfig, str] = field(default_factory=dict)
    render_errors: Dict[AccountConfig, str] = field(default_factory=dict)
    summary_file: Optional[str] = None

    @property
    def failed_queries(self) -> int:
        return len(self.bundle.failures())


class ImageRunner:
    """Fetches every metric for every account, then renders one image per account

    ``renderer`` is any object with ``render(account, results)`` returning
    the path of the written image (see ChartRenderer).
    """

    def __init__(self, remote, renderer, settings: Optional[FetchSettings] = None, summary_dir: Optional[str] = None):
        self.orchestrator = MetricsFetchOrchestrator(remote, settings)
        self.renderer = renderer
        self.summary_dir = summary_dir

    def run(self, accounts: Sequence[AccountConfig], templates: Sequence[MetricSpecTemplate],
            period_seconds: int, window: TimeWindow, cancel_event: Optional[Event] = None) -> RunSummary:
        logger.info(f"\n{'='*80}")
        logger.info(f"Fetching {len(templates)} metric(s) for {len(accounts)} account(s)")
        logger.info(f"Window: {window.start.isoformat()} -> {window.end.isoformat()} (period={period_seconds}s)")
        logger.info(f"{'='*80}")

        queries = build_queries(accounts, templates, period_seconds, window)
        results = self.orchestrator.fetch_all(queries, cancel_event)
        bundle = assemble(accounts, results)

        summary = RunSummary(bundle=bundle)
        if bundle:
            logger.info(f"  Rendering {len(bundle)} image(s)...")
        for account, account_results in bundle.items():
            try:
                summary.images[account] = str(self.renderer.render(account, account_results))
            except RenderError as e:
                logger.info(f"  Warning: {e}")
                summary.render_errors[account] = str(e)

        if self.summary_dir is not None:
            summary.summary_file = write_summary(self.summary_dir, bundle, summary.images, summary.render_errors)
        log_failures(bundle, summary.render_errors)
        return summary
