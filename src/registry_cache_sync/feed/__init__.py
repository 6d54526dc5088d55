# SPDX-License-Identifier: MIT
"""Registry change feed consumption."""

from .couch_changes import CouchChangesFeed, parse_changes


__all__ = ["CouchChangesFeed", "parse_changes"]
