# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""AWS CloudWatch operations"""

import logging
import time
from datetime import timedelta
from threading import Lock
from typing import Dict, List, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    NoCredentialsError,
    ReadTimeoutError,
)

from cloudwatch_account_images.core.models import Datapoint, MetricQuery
from cloudwatch_account_images.errors import (
    AuthorizationError,
    FetchTimeoutError,
    NotFoundError,
    ThrottlingError,
)

logger = logging.getLogger(__name__)

# CloudWatch limit: 100,800 data points per GetMetricData request
MAX_DATA_POINTS = 100800

THROTTLING_CODES = {
    'Throttling',
    'ThrottlingException',
    'ThrottledException',
    'RequestLimitExceeded',
    'TooManyRequestsException',
    'LimitExceededException',
}

AUTHORIZATION_CODES = {
    'AccessDenied',
    'AccessDeniedException',
    'UnauthorizedOperation',
    'ExpiredToken',
    'ExpiredTokenException',
    'InvalidClientTokenId',
    'UnrecognizedClientException',
    'AuthFailure',
}

NOT_FOUND_CODES = {
    'ResourceNotFound',
    'ResourceNotFoundException',
    'InvalidParameterValue',
    'InvalidParameterValueException',
    'NotFound',
}


def classify_client_error(error: Exception) -> Exception:
    """Map a botocore exception onto the fetch error taxonomy

    Returns the original exception unchanged when it fits no category.
    """
    if isinstance(error, ClientError):
        code = error.response.get('Error', {}).get('Code', '')
        message = error.response.get('Error', {}).get('Message', str(error))
        if code in THROTTLING_CODES:
            return ThrottlingError(message, code=code)
        if code in AUTHORIZATION_CODES:
            return AuthorizationError(message, code=code)
        if code in NOT_FOUND_CODES:
            return NotFoundError(message, code=code)
        return error
    if isinstance(error, (ReadTimeoutError, ConnectTimeoutError)):
        return FetchTimeoutError(str(error), code=type(error).__name__)
    if isinstance(error, NoCredentialsError):
        return AuthorizationError(str(error), code='NoCredentials')
    return error


def chunk_time_range(start_time, end_time, period) -> List[Tuple]:
    """Split time range into chunks to respect CloudWatch data point limit

    With Period=60 a single request covers 70 days; with Period=3600 it
    covers 11.5 years.
    """
    max_duration = timedelta(seconds=MAX_DATA_POINTS * period)

    chunks = []
    current_start = start_time

    while current_start < end_time:
        current_end = min(current_start + max_duration, end_time)
        chunks.append((current_start, current_end))
        current_start = current_end

    return chunks


class CloudWatchMetricsClient:
    """Remote metrics API backed by CloudWatch GetMetricData

    One boto3 client per (region, timeout) is created lazily and shared by
    all worker threads. botocore's own retries are switched off so the
    orchestrator alone decides when to retry.
    """

    def __init__(self, session: Optional[boto3.session.Session] = None):
        self.session = session or boto3.session.Session()
        self._clients: Dict[Tuple[str, float], object] = {}
        self._clients_lock = Lock()

    def client_for(self, region: str, timeout: float):
        key = (region, timeout)
        with self._clients_lock:
            if key not in self._clients:
                config = Config(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={'max_attempts': 1, 'mode': 'standard'},
                )
                self._clients[key] = self.session.client('cloudwatch', region_name=region, config=config)
            return self._clients[key]

    def fetch(self, query: MetricQuery, timeout: float) -> Tuple[Datapoint, ...]:
        """Fetch one metric series for one account

        Returns:
            Tuple of (timestamp, value) sorted by timestamp

        ``timeout`` is the budget for the whole query: each request is
        limited by the client's connect/read timeouts, and no further chunk
        or page is requested once the budget is spent.

        Raises:
            ThrottlingError, FetchTimeoutError, AuthorizationError, NotFoundError,
            or the unclassified botocore exception
        """
        client = self.client_for(query.account.region, timeout)
        metric_query = {
            'Id': 'm0',
            'MetricStat': {
                'Metric': {
                    'Namespace': query.namespace,
                    'MetricName': query.metric_name,
                    'Dimensions': [{'Name': k, 'Value': v} for k, v in query.dimensions],
                },
                'Period': query.period_seconds,
                'Stat': query.stat,
            },
            'ReturnData': True,
        }

        # The timeout bounds the whole query, across chunks and pages
        deadline = time.monotonic() + timeout
        points = {}
        try:
            for chunk_start, chunk_end in chunk_time_range(query.window.start, query.window.end, query.period_seconds):
                kwargs = {
                    'MetricDataQueries': [metric_query],
                    'StartTime': chunk_start,
                    'EndTime': chunk_end,
                    'ScanBy': 'TimestampAscending',
                }
                while True:
                    if time.monotonic() >= deadline:
                        raise FetchTimeoutError(
                            f"Query exceeded {timeout}s after {len(points)} datapoints",
                            code='QueryDeadlineExceeded',
                        )
                    response = client.get_metric_data(**kwargs)
                    for result in response.get('MetricDataResults', []):
                        points.update(zip(result.get('Timestamps', []), result.get('Values', [])))
                    next_token = response.get('NextToken')
                    if not next_token:
                        break
                    kwargs['NextToken'] = next_token
        except (ClientError, ReadTimeoutError, ConnectTimeoutError, NoCredentialsError) as e:
            classified = classify_client_error(e)
            if classified is e:
                raise
            raise classified from e

        logger.debug(f"    {query.account} {query.metric_name}: {len(points)} datapoints")
        return tuple(sorted(points.items()))

    def list_metrics(self, region: str, namespace: Optional[str] = None) -> List[Dict]:
        """List metrics available in a region, optionally limited to one namespace"""
        client = self.session.client('cloudwatch', region_name=region)
        kwargs = {'Namespace': namespace} if namespace else {}
        metrics = []
        paginator = client.get_paginator('list_metrics')
        for page in paginator.paginate(**kwargs):
            metrics.extend(page.get('Metrics', []))
        return metrics
