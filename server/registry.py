# server/registry.py
# The connection registry: the set of peers currently eligible to send and receive relayed messages.
# Pure state, no I/O. One instance is created per server and handed to the components that need it.

import logging    # For reporting invariant violations.
import threading  # For the lock guarding membership changes against concurrent snapshots.


class ConnectionRegistry:
    """
    Set of open peer connections keyed by identity.

    add/remove/snapshot are mutually exclusive, so a snapshot is always a consistent
    point-in-time view and can be iterated while peers come and go.
    """

    def __init__(self):
        self._peers = {}
        self._lock = threading.Lock()

    def add(self, peer):
        """
        Registers a newly accepted peer.

        Returns:
            bool: True if added. A duplicate identity is logged and ignored (returns False).
        """
        with self._lock:
            if peer.identity in self._peers:
                logging.error(f"Peer identity {peer.identity} is already registered. Ignoring duplicate.")
                return False
            self._peers[peer.identity] = peer
            return True

    def remove(self, peer):
        """
        Unregisters a peer by identity. Removing a peer that is not registered is a no-op.

        Returns:
            bool: True if the peer was registered and has been removed.
        """
        with self._lock:
            # Only the registered object itself is removed, never another peer sharing its identity.
            if self._peers.get(peer.identity) is not peer:
                return False
            del self._peers[peer.identity]
            return True

    def snapshot_excluding(self, sender):
        """Returns a tuple of all registered peers except `sender`, in no particular order."""
        with self._lock:
            return tuple(peer for identity, peer in self._peers.items() if identity != sender.identity)

    def get(self, identity):
        with self._lock:
            return self._peers.get(identity)

    def __contains__(self, peer):
        with self._lock:
            return self._peers.get(peer.identity) is peer

    def __len__(self):
        with self._lock:
            return len(self._peers)
