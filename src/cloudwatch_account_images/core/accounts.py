# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

"""Account file loading and namespace filtering

The accounts file is TOML, a list of tables under ``account``:

    [[account]]
    namespace = "SomeDataProcessingProgram"
    account_id = "111111111111"
    region = "us-east-1"
"""

import logging
import tomllib
from typing import List, Optional, Sequence

from cloudwatch_account_images.core.models import AccountConfig
from cloudwatch_account_images.errors import ConfigError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('namespace', 'account_id', 'region')


def load_accounts(filepath) -> List[AccountConfig]:
    """Load accounts from a TOML file

    Args:
        filepath: Path to the accounts TOML file

    Returns:
        List of AccountConfig in file order (duplicates kept)

    Raises:
        ConfigError: If the file is unreadable, not TOML, or an entry is incomplete
    """
    try:
        with open(filepath, 'rb') as f:
            data = tomllib.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read accounts file {filepath}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Accounts file {filepath} is not valid TOML: {e}") from e

    entries = data.get('account')
    if not isinstance(entries, list):
        raise ConfigError(f"Accounts file {filepath} must contain an [[account]] array of tables")

    accounts = []
    for i, entry in enumerate(entries, 1):
        if not isinstance(entry, dict):
            raise ConfigError(f"Account #{i} in {filepath} is not a table")
        missing = [name for name in REQUIRED_FIELDS if name not in entry]
        if missing:
            raise ConfigError(f"Account #{i} in {filepath} is missing: {', '.join(missing)}")
        for name in REQUIRED_FIELDS:
            if not isinstance(entry[name], str):
                raise ConfigError(f"Account #{i} in {filepath}: '{name}' must be a string")
        accounts.append(AccountConfig(
            namespace=entry['namespace'],
            account_id=entry['account_id'],
            region=entry['region'],
        ))

    logger.debug(f"Loaded {len(accounts)} accounts from {filepath}")
    return accounts


def select_accounts(accounts: Sequence[AccountConfig], pattern: Optional[str] = None) -> List[AccountConfig]:
    """Keep accounts whose namespace contains ``pattern`` (plain substring)

    No pattern returns every account unchanged. Order is preserved and an
    empty result is valid.
    """
    if pattern is None:
        return list(accounts)
    return [account for account in accounts if pattern in account.namespace]
