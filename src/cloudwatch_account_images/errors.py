# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Exception types shared across loading, fetching and rendering"""


class CloudWatchImagesError(Exception):
    """Base class for all errors raised by this package"""


class ConfigError(CloudWatchImagesError):
    """Malformed or unreadable account file, traffic spec or settings"""


class InvalidDuration(CloudWatchImagesError):
    """Bad relative time expression (e.g. '-5H', '10X')"""


class FetchError(CloudWatchImagesError):
    """Error returned by the remote metrics API for one query

    Subclasses set ``retryable`` to tell the orchestrator whether another
    attempt may succeed.
    """

    retryable = False

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class ThrottlingError(FetchError):
    retryable = True


class FetchTimeoutError(FetchError):
    retryable = True


class AuthorizationError(FetchError):
    pass


class NotFoundError(FetchError):
    pass


class RenderError(CloudWatchImagesError):
    """Chart rendering failed for a single account"""
