# SPDX-License-Identifier: MIT
"""Integration tests for registry cache sync.

These tests wire the real worker pool, controller, tracker and SQLite stores
together. The feed, resolver and npm cache are in-memory fakes, so no network
access or npm installation is needed.
"""
