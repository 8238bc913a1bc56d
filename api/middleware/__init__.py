# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains middleware components for volunteer authentication,
authorization and error formatting in the SEWA relief ledger API.
"""
