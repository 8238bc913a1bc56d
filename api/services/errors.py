# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Exceptions raised by storage collaborators for infrastructure faults.
"""


class StorageError(Exception):
    """Base class for registry and ledger infrastructure failures."""
    pass


class RegistryUnavailableError(StorageError):
    """Raised when the family registry cannot be reached or times out."""
    pass


class DuplicateFamilyError(StorageError):
    """Raised when a family record with the same key already exists."""
    pass


class LedgerUnavailableError(StorageError):
    """Raised when the distribution ledger cannot be read."""
    pass


class LedgerWriteError(StorageError):
    """Raised when a ledger append fails or times out."""
    pass
