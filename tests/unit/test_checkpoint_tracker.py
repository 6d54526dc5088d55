# SPDX-License-Identifier: MIT
"""Tests for the checkpoint commit policies.

Scenario from the commit-order hazard: seqs 100 and 101 are in flight and
101 completes first. Naively persisting every completion would move the
cursor 101 -> 100. The tests below pin down what each policy does instead.
"""

import pytest

from registry_cache_sync.enums import CommitPolicy
from registry_cache_sync.sync import CheckpointTracker


class TestOrderedPolicy:
    """The default policy: commit only seqs with no unfinished predecessor."""

    @pytest.fixture
    def tracker(self):
        return CheckpointTracker(CommitPolicy.ORDERED, committed=99)

    def test_in_order_completion(self, tracker):
        """Test that in-order completions commit one by one."""
        tracker.register(100)
        tracker.register(101)

        assert tracker.complete(100) == 100
        assert tracker.complete(101) == 101
        assert tracker.committed == 101

    def test_out_of_order_completion_is_buffered(self, tracker):
        """Test 101 finishing before 100: no regression, no skipping."""
        tracker.register(100)
        tracker.register(101)

        assert tracker.complete(101) is None
        assert tracker.committed == 99
        assert tracker.buffered == 1

        assert tracker.complete(100) == 101
        assert tracker.committed == 101
        assert tracker.buffered == 0

    def test_lower_seq_never_skipped(self, tracker):
        """Test that a still-running lower seq holds the cursor back."""
        for seq in (100, 101, 102):
            tracker.register(seq)

        assert tracker.complete(102) is None
        assert tracker.complete(101) is None
        assert tracker.committed == 99
        assert tracker.in_flight == 1

    def test_release_unblocks_higher_completions(self, tracker):
        """Test that a released seq stops holding back higher ones."""
        tracker.register(100)
        tracker.register(101)
        tracker.complete(101)

        assert tracker.release(100) == 101
        assert tracker.committed == 101

    def test_release_alone_commits_nothing(self, tracker):
        """Test that releasing the only seq does not commit it."""
        tracker.register(100)

        assert tracker.release(100) is None
        assert tracker.committed == 99

    def test_duplicate_seq_waits_for_both(self, tracker):
        """Test a seq delivered twice commits only after both complete."""
        tracker.register(100)
        tracker.register(100)
        tracker.register(101)

        assert tracker.complete(100) is None
        assert tracker.complete(101) is None
        assert tracker.complete(100) == 101

    def test_redelivered_old_seq_does_not_regress(self, tracker):
        """Test that a seq at or below the committed cursor is ignored."""
        tracker.register(50)

        assert tracker.complete(50) is None
        assert tracker.committed == 99

    def test_first_commit_without_prior_cursor(self):
        """Test committing when nothing was persisted yet (live tail)."""
        tracker = CheckpointTracker(CommitPolicy.ORDERED, committed=None)
        tracker.register(5)

        assert tracker.complete(5) == 5


class TestMaxSeenPolicy:
    """Commit any completion above the committed cursor immediately."""

    @pytest.fixture
    def tracker(self):
        return CheckpointTracker(CommitPolicy.MAX_SEEN, committed=99)

    def test_out_of_order_completion_never_regresses(self, tracker):
        """Test 101 then 100: cursor stays at 101."""
        tracker.register(100)
        tracker.register(101)

        assert tracker.complete(101) == 101
        assert tracker.complete(100) is None
        assert tracker.committed == 101

    def test_lower_seq_can_be_skipped(self, tracker):
        """Test the documented cost: 101 commits while 100 is unfinished.

        If 100 is then released (it could not be resolved) or the process
        stops before it completes, a restart from 101 never revisits it.
        """
        tracker.register(100)
        tracker.register(101)

        assert tracker.complete(101) == 101
        assert tracker.release(100) is None
        assert tracker.committed == 101
        assert tracker.in_flight == 0


class TestTrackerBookkeeping:
    """Test cases shared by both policies."""

    @pytest.mark.parametrize("policy", list(CommitPolicy))
    def test_unregistered_seq_rejected(self, policy):
        """Test that completing an unknown seq is an error."""
        tracker = CheckpointTracker(policy)

        with pytest.raises(ValueError, match="not in flight"):
            tracker.complete(1)
        with pytest.raises(ValueError, match="not in flight"):
            tracker.release(1)

    @pytest.mark.parametrize("policy", list(CommitPolicy))
    def test_committed_is_monotonic(self, policy):
        """Test that any completion order yields a non-decreasing cursor."""
        tracker = CheckpointTracker(policy, committed=0)
        seqs = list(range(1, 21))
        for seq in seqs:
            tracker.register(seq)

        # Interleaved, out-of-order completion
        order = seqs[1::2] + seqs[::2]
        commits = [tracker.complete(seq) for seq in order]
        committed = [seq for seq in commits if seq is not None]

        assert committed == sorted(committed)
        assert len(committed) == len(set(committed))
        assert tracker.committed == 20
