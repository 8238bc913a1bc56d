# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the SEWA relief ledger.

This package contains the identifier, eligibility and recording rules. The
functions take their registry and ledger collaborators as arguments and
report expected business outcomes as DomainResult values.
"""
