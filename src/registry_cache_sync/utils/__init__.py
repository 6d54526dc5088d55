# SPDX-License-Identifier: MIT
"""Small shared utilities."""
