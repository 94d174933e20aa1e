"""Per-key mutual exclusion for operations that must not interleave within a process.

The database constraints (unique checkout key, unique refund per return)
remain the cross-process guarantee.
"""

import threading
from contextlib import contextmanager

# key -> [lock, number of callers holding or waiting on it]
_locks: dict[str, list] = {}
_guard = threading.Lock()


@contextmanager
def keyed_lock(key):
    key = str(key)
    with _guard:
        entry = _locks.setdefault(key, [threading.Lock(), 0])
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        with _guard:
            entry[1] -= 1
            if entry[1] == 0:
                del _locks[key]
