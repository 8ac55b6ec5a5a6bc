"""
Tests for the connection registry.

Run with: pytest tests/test_registry.py -v
"""

import threading

from registry import ConnectionRegistry


class StubPeer:
    def __init__(self, identity):
        self.identity = identity


class TestAddRemove:

    def test_add_registers_peer(self):
        registry = ConnectionRegistry()
        peer = StubPeer("a")

        assert registry.add(peer) is True
        assert peer in registry
        assert len(registry) == 1
        assert registry.get("a") is peer

    def test_duplicate_identity_is_ignored(self, caplog):
        registry = ConnectionRegistry()
        first = StubPeer("a")
        registry.add(first)

        assert registry.add(StubPeer("a")) is False
        assert registry.get("a") is first
        assert len(registry) == 1
        assert "already registered" in caplog.text

    def test_remove_is_idempotent(self):
        registry = ConnectionRegistry()
        a, b = StubPeer("a"), StubPeer("b")
        registry.add(a)
        registry.add(b)

        assert registry.remove(a) is True
        state_after_once = registry.snapshot_excluding(StubPeer("x"))
        assert registry.remove(a) is False
        assert registry.snapshot_excluding(StubPeer("x")) == state_after_once
        assert len(registry) == 1

    def test_remove_leaves_other_peer_with_same_identity(self):
        registry = ConnectionRegistry()
        first = StubPeer("a")
        registry.add(first)
        impostor = StubPeer("a")

        assert impostor not in registry
        assert registry.remove(impostor) is False
        assert first in registry
        assert registry.get("a") is first

    def test_remove_absent_peer_is_noop(self):
        registry = ConnectionRegistry()
        assert registry.remove(StubPeer("ghost")) is False
        assert len(registry) == 0


class TestSnapshot:

    def test_excludes_sender(self):
        registry = ConnectionRegistry()
        a, b, c = StubPeer("a"), StubPeer("b"), StubPeer("c")
        for peer in (a, b, c):
            registry.add(peer)

        snapshot = registry.snapshot_excluding(a)

        assert set(snapshot) == {b, c}

    def test_snapshot_is_unaffected_by_later_changes(self):
        registry = ConnectionRegistry()
        a, b, c = StubPeer("a"), StubPeer("b"), StubPeer("c")
        registry.add(a)
        registry.add(b)

        snapshot = registry.snapshot_excluding(a)
        registry.remove(b)
        registry.add(c)

        assert snapshot == (b,)

    def test_iteration_during_concurrent_mutation(self):
        """Snapshots taken while other threads add and remove peers never fail mid-iteration."""
        registry = ConnectionRegistry()
        sender = StubPeer("sender")
        registry.add(sender)
        errors = []
        stop = threading.Event()

        def churn(prefix):
            i = 0
            while not stop.is_set():
                peer = StubPeer(f"{prefix}-{i % 50}")
                registry.add(peer)
                registry.remove(peer)
                i += 1

        def read():
            try:
                for _ in range(2000):
                    for peer in registry.snapshot_excluding(sender):
                        assert peer.identity != "sender"
            except Exception as e:
                errors.append(e)

        writers = [threading.Thread(target=churn, args=(n,)) for n in ("w1", "w2")]
        for writer in writers:
            writer.start()
        reader = threading.Thread(target=read)
        reader.start()
        reader.join()
        stop.set()
        for writer in writers:
            writer.join()

        assert errors == []
