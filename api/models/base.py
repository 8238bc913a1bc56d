# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base record models with common configuration and validation helpers.
"""

import re
import time
from pydantic import BaseModel, ConfigDict


COMMITMENT_PATTERN = re.compile(r'^[a-f0-9]{64}$')


def current_time_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def is_valid_commitment(value: str) -> bool:
    """Check that a value is a lowercase hex SHA-256 digest."""
    return isinstance(value, str) and bool(COMMITMENT_PATTERN.match(value))


class BaseRecord(BaseModel):
    """Base for persisted ledger and registry records."""

    model_config = ConfigDict(
        # Allow population by field name or alias
        populate_by_name=True,
        # Validate assignment
        validate_assignment=True,
        # Strip incidental whitespace from string fields
        str_strip_whitespace=True
    )

    schema_version: int = 1


class ImmutableRecord(BaseRecord):
    """Base for records that never change once created."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True
    )
