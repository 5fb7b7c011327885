"""Client-side sync cursor: last seen sequence number plus a dedupe window."""

from collections import OrderedDict


class ClientSyncCursor:
    """Tracks what the client has already delivered for one session.

    The dedupe set is bounded and evicts the oldest entry first, so memory
    stays flat on long sessions while replays of recent messages are still
    caught.
    """

    def __init__(self, session_id: int, capacity: int = 500) -> None:
        self.session_id = session_id
        self.last_seen_seq = 0
        self._capacity = capacity
        self._seen: OrderedDict[int, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, seq: object) -> bool:
        return seq in self._seen

    def is_new(self, seq: int) -> bool:
        """True if ``seq`` has not been delivered yet."""
        return seq not in self._seen and seq > self.last_seen_seq

    def remember(self, seq: int) -> None:
        """Record a delivered seq and advance the cursor."""
        self._seen[seq] = None
        self._seen.move_to_end(seq)
        while len(self._seen) > self._capacity:
            self._seen.popitem(last=False)
        if seq > self.last_seen_seq:
            self.last_seen_seq = seq

    def reset(self, session_id: int | None = None) -> None:
        """Forget everything, optionally re-targeting another session."""
        if session_id is not None:
            self.session_id = session_id
        self.last_seen_seq = 0
        self._seen.clear()
