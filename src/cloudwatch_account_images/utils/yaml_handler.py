# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Centralized YAML file operations with UTF-8 encoding"""

import yaml


def load_yaml(filepath):
    """Load YAML file with UTF-8 encoding

    Args:
        filepath: Path to YAML file

    Returns:
        Parsed YAML data (dict, list or scalar)
    """
    with open(filepath, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f)
