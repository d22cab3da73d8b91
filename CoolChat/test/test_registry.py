"""
Unit tests for the client registry.
"""

import threading
from unittest.mock import MagicMock

import pytest

from CoolChat.core.server.exceptions import DuplicateUsername
from CoolChat.core.server.registry import ClientRegistry


def fake_session(username):
    session = MagicMock()
    session.username = username
    return session


class TestClientRegistry:
    """Tests for ClientRegistry."""

    def setup_method(self):
        """Set up test fixtures."""
        self.registry = ClientRegistry()

    def test_register_and_lookup(self):
        alice = fake_session("alice")

        self.registry.register("alice", alice)

        assert self.registry.lookup("alice") is alice
        assert "alice" in self.registry
        assert len(self.registry) == 1

    def test_lookup_unknown(self):
        assert self.registry.lookup("nobody") is None

    def test_usernames_are_case_sensitive(self):
        self.registry.register("alice", fake_session("alice"))
        self.registry.register("Alice", fake_session("Alice"))

        assert self.registry.usernames() == ["Alice", "alice"]

    def test_duplicate_registration_rejected(self):
        first = fake_session("alice")
        self.registry.register("alice", first)

        with pytest.raises(DuplicateUsername) as excinfo:
            self.registry.register("alice", fake_session("alice"))

        assert excinfo.value.username == "alice"
        assert str(excinfo.value) == "User 'alice' is already logged in."
        assert self.registry.lookup("alice") is first

    def test_unregister_is_idempotent(self):
        alice = fake_session("alice")
        self.registry.register("alice", alice)

        assert self.registry.unregister("alice") is alice
        assert self.registry.unregister("alice") is None
        assert self.registry.lookup("alice") is None

    def test_unregister_only_matching_session(self):
        current = fake_session("alice")
        stale = fake_session("alice")
        self.registry.register("alice", current)

        assert self.registry.unregister("alice", stale) is None
        assert self.registry.lookup("alice") is current

        assert self.registry.unregister("alice", current) is current
        assert len(self.registry) == 0

    def test_register_after_unregister(self):
        self.registry.register("alice", fake_session("alice"))
        self.registry.unregister("alice")

        replacement = fake_session("alice")
        self.registry.register("alice", replacement)

        assert self.registry.lookup("alice") is replacement

    def test_snapshot_is_a_copy(self):
        self.registry.register("alice", fake_session("alice"))
        snapshot = self.registry.snapshot_all()

        self.registry.register("bob", fake_session("bob"))
        snapshot.clear()

        assert len(self.registry) == 2
        assert {s.username for s in self.registry.snapshot_all()} == {"alice", "bob"}

    def test_concurrent_registration_keeps_one_session(self):
        winners = []
        losers = []
        barrier = threading.Barrier(16)

        def attempt(index):
            session = fake_session("alice")
            barrier.wait()
            try:
                self.registry.register("alice", session)
                winners.append(index)
            except DuplicateUsername:
                losers.append(index)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(winners) == 1
        assert len(losers) == 15
        assert len(self.registry) == 1
