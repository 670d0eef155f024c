# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""CloudWatch Account Images - Per-account metric charts across many AWS accounts"""

from importlib.metadata import version

__version__ = version("cloudwatch-account-images")
__all__ = ["__version__"]
