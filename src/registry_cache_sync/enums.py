# SPDX-License-Identifier: MIT
"""Enums for registry cache sync."""

from enum import Enum


class MutationOutcome(str, Enum):
    """Result of applying one work item to the cache."""

    ADDED = "added"
    INVALIDATED = "invalidated"
    SKIPPED = "skipped"
    FAILED = "failed"


class PipelineState(str, Enum):
    """Lifecycle states of the pipeline controller."""

    IDLE = "idle"
    RECONCILING = "reconciling"
    FOLLOWING = "following"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class CommitPolicy(str, Enum):
    """How completion signals translate into checkpoint commits.

    ORDERED buffers out-of-order completions and only commits a seq once every
    lower registered seq has finished. MAX_SEEN commits any completed seq above
    the last committed one.
    """

    ORDERED = "ordered"
    MAX_SEEN = "max_seen"
