# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Unified CLI entry point for cloudwatch-account-images."""

import sys
import logging
import traceback
import argparse
from datetime import datetime, timezone

from cloudwatch_account_images.errors import ConfigError, InvalidDuration

logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger(__name__)


def cmd_config(args):
    """Validate and display the accounts file."""
    from cloudwatch_account_images.core.accounts import load_accounts, select_accounts

    accounts = load_accounts(args.config_path)
    if args.pattern is not None:
        accounts = select_accounts(accounts, args.pattern)
        print(f"Filtered accounts ({args.pattern}):")

    for account in accounts:
        print(f"namespace={account.namespace} account_id={account.account_id} region={account.region}")
    logger.info(f"\n{len(accounts)} account(s)")


def cmd_images(args):
    """Fetch metrics for every selected account and render one image each."""
    from cloudwatch_account_images.aws.cloudwatch import CloudWatchMetricsClient
    from cloudwatch_account_images.core.accounts import load_accounts, select_accounts
    from cloudwatch_account_images.core.chart_renderer import ChartRenderer
    from cloudwatch_account_images.core.duration import align_to_period, parse_duration, resolve_window
    from cloudwatch_account_images.core.runner import ImageRunner
    from cloudwatch_account_images.core.traffic import load_traffic_spec
    from cloudwatch_account_images.utils.settings import load_settings

    if args.period <= 0:
        raise ConfigError(f"--period must be a positive number of seconds, got {args.period}")

    # Everything that can fail fatally happens before any fetching starts
    settings = load_settings().with_overrides(
        max_workers=args.max_workers,
        max_retries=args.max_retries,
        timeout_seconds=args.timeout,
    )
    start = parse_duration(args.start)
    accounts = select_accounts(load_accounts(args.config_path), args.pattern)
    templates = load_traffic_spec(args.template_path)

    if args.pattern is not None:
        logger.info(f"Filtered accounts ({args.pattern}):")
        for account in accounts:
            logger.info(f"  {account}")

    if not accounts:
        logger.info("No accounts selected, nothing to render.")
        return

    now = align_to_period(datetime.now(timezone.utc), 60)
    window = resolve_window(now, start)

    renderer = ChartRenderer(args.output_dir, title=args.title, start_label=str(start))
    runner = ImageRunner(CloudWatchMetricsClient(), renderer, settings, summary_dir=args.output_dir)
    summary = runner.run(accounts, templates, args.period, window)

    logger.info(
        f"\nCompleted! {len(summary.images)} image(s) saved to: {args.output_dir} "
        f"({summary.failed_queries} failed queries, {len(summary.render_errors)} render errors)"
    )


def cmd_show(args):
    """List metrics available in a region."""
    from cloudwatch_account_images.aws.cloudwatch import CloudWatchMetricsClient

    metrics = CloudWatchMetricsClient().list_metrics(args.region, args.namespace)
    for metric in metrics:
        print(f"Namespace: {metric.get('Namespace', '')}")
        print(f"Name:      {metric.get('MetricName', '')}")
        print("Dimensions:")
        for dimension in metric.get('Dimensions', []):
            print(f"  Name:  {dimension.get('Name', '')}")
            print(f"  Value: {dimension.get('Value', '')}")
        print()

    print(f"Found {len(metrics)} metrics.")


def build_parser():
    parser = argparse.ArgumentParser(
        prog='cwai',
        description='CloudWatch Account Images - Render metric charts across many AWS accounts'
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command')

    # config
    p_config = subparsers.add_parser('config', help='Validate and display the accounts file')
    p_config.add_argument('config_path', help='TOML file with [[account]] entries')
    p_config.add_argument('-f', '--pattern', help='Only show accounts whose namespace contains PATTERN')
    p_config.set_defaults(func=cmd_config)

    # images
    p_images = subparsers.add_parser('images', help='Fetch metrics and render one image per account')
    p_images.add_argument('template_path', help='Traffic spec (JSON or YAML) listing the metrics to chart')
    p_images.add_argument('config_path', help='TOML file with [[account]] entries')
    p_images.add_argument('-p', '--period', type=int, default=3600,
                          help='Metric period in seconds (default: 3600)')
    p_images.add_argument('-f', '--pattern', help='Only use accounts whose namespace contains PATTERN')
    p_images.add_argument('-s', '--start', '--start-time', dest='start', default='4320H',
                          help='How far back the window starts, e.g. 4320H or 30D (default: 4320H)')
    p_images.add_argument('--title', default='metric', help='Title to identify the images (default: metric)')
    p_images.add_argument('-o', '--output-dir', default='results',
                          help='Directory to save images and summary (default: results)')
    p_images.add_argument('--max-workers', type=int, help='Parallel fetch workers')
    p_images.add_argument('--max-retries', type=int, help='Retries for throttled or timed-out queries')
    p_images.add_argument('--timeout', type=float, help='Per-request timeout in seconds')
    p_images.set_defaults(func=cmd_images)

    # show
    p_show = subparsers.add_parser('show', help='List metrics available in a region')
    p_show.add_argument('-r', '--region', default='us-west-2', help='AWS region (default: us-west-2)')
    p_show.add_argument('--namespace', help='Only list metrics in this namespace')
    p_show.set_defaults(func=cmd_show)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.verbose:
        logging.getLogger('cloudwatch_account_images').setLevel(logging.DEBUG)

    try:
        args.func(args)
    except (ConfigError, InvalidDuration) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("\nOperation cancelled by user.")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error: {e}")
        traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
