import threading
from contextlib import contextmanager


class _TransactionLock:

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class ContextRegistry:
    """
    Thread-safe map of transaction id to participant context.

    A transaction's lock lives only while its context exists or a thread is
    using the lock, so queries about unknown ids leave nothing behind.
    """

    def __init__(self):
        self._contexts = {}
        self._locks = {}
        self._guard = threading.Lock()

    def get(self, transaction_id):
        with self._guard:
            return self._contexts.get(transaction_id)

    def put(self, context):
        with self._guard:
            self._contexts[context.transaction_id] = context

    def remove(self, transaction_id):
        with self._guard:
            return self._contexts.pop(transaction_id, None)

    @contextmanager
    def lock(self, transaction_id):
        """Per-transaction lock serializing every mutation of one context"""
        with self._guard:
            entry = self._locks.get(transaction_id)
            if entry is None:
                entry = self._locks[transaction_id] = _TransactionLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0 and transaction_id not in self._contexts:
                    del self._locks[transaction_id]

    def __len__(self):
        with self._guard:
            return len(self._contexts)
