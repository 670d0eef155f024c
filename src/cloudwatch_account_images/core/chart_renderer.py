# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""PNG chart rendering for one account's fetched series"""

import logging
import os
import re
import time
from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use('Agg')

import matplotlib.dates as mdates
import matplotlib.pyplot as plt

from cloudwatch_account_images.core.models import AccountConfig, FetchResult
from cloudwatch_account_images.errors import RenderError

logger = logging.getLogger(__name__)

LINE_COLORS = ['#00D9FF', '#FF6B6B', '#4ECDC4', '#FFE66D', '#C44DFF', '#2ECC71']

_UNSAFE_CHARS = re.compile(r'[^A-Za-z0-9._-]+')


def safe_filename_part(text: str) -> str:
    return _UNSAFE_CHARS.sub('_', str(text)).strip('_') or 'x'


class ChartRenderer:
    """Renders one PNG per account into ``output_dir``

    Successful metrics become one line each; failed metrics are listed in a
    note under the chart. An account without any data still gets an image
    saying so.
    """

    def __init__(self, output_dir: str = 'results', title: str = 'metric', start_label: str = '', dpi: int = 120):
        self.output_dir = output_dir
        self.title = title
        self.start_label = start_label
        self.dpi = dpi
        os.makedirs(self.output_dir, exist_ok=True)

    def image_path(self, account: AccountConfig) -> Path:
        parts = [account.namespace, self.title, account.region, account.account_id]
        if self.start_label:
            parts.append(self.start_label)
        parts.append(str(int(time.time())))
        return Path(self.output_dir) / ('-'.join(safe_filename_part(p) for p in parts) + '.png')

    def render(self, account: AccountConfig, results: Sequence[FetchResult]) -> Path:
        """Render and save the chart for one account

        Raises:
            RenderError: If the figure cannot be drawn or saved
        """
        path = self.image_path(account)
        fig = None
        try:
            fig, ax = plt.subplots(figsize=(14, 6))
            plotted = 0
            failed = []

            for result in results:
                if not result.ok:
                    failed.append(f"{result.query.display_name}: {result.error_kind.value}")
                    continue
                if not result.series:
                    failed.append(f"{result.query.display_name}: no datapoints")
                    continue
                timestamps = [ts for ts, _ in result.series]
                values = [value for _, value in result.series]
                ax.plot(timestamps, values,
                        label=result.query.display_name,
                        color=LINE_COLORS[plotted % len(LINE_COLORS)],
                        linewidth=1.5)
                plotted += 1

            ax.set_title(f"{account.namespace} - {self.title}\n{account.account_id} / {account.region}",
                         fontsize=12, fontweight='bold')
            if plotted:
                ax.legend(loc='upper right', framealpha=0.9)
                ax.xaxis.set_major_formatter(mdates.DateFormatter('%Y-%m-%d %H:%M'))
                fig.autofmt_xdate()
            else:
                ax.text(0.5, 0.5, 'No data', transform=ax.transAxes,
                        ha='center', va='center', fontsize=20, color='#888888')
            ax.grid(True, linestyle='--', alpha=0.7)

            if failed:
                fig.text(0.01, 0.01, 'No data for ' + '; '.join(failed), fontsize=8, color='#B03A2E')

            fig.savefig(path, dpi=self.dpi, bbox_inches='tight')
        except Exception as e:
            raise RenderError(f"Could not render chart for {account}: {e}") from e
        finally:
            if fig is not None:
                plt.close(fig)

        logger.info(f"  Generated: {path}")
        return path
