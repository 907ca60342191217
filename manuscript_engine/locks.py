"""
manuscript_engine/locks.py -- Per-directory locks.

Every sidecar read-modify-write and every multi-directory mutation runs
under the lock of each directory it touches, so two overlapping operations
on the same sidecar cannot lose each other's update.  Locks are reentrant
(a mutator holding a directory may call into the store for the same
directory) and process-local.

Usage:
    from manuscript_engine.locks import DirectoryLockRegistry

    locks = DirectoryLockRegistry()
    with locks.hold("/novel/contents", "/novel/settings"):
        ...
"""

import contextlib
import os
import threading


class DirectoryLockRegistry:
    """Hands out one ``threading.RLock`` per normalized directory path.

    Locks are created lazily on first request.  When several directories
    are held at once they are acquired in sorted path order, so two
    operations locking the same pair never deadlock.
    """

    def __init__(self):
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    @staticmethod
    def _key(directory) -> str:
        return os.path.normcase(os.path.abspath(str(directory)))

    def get_lock(self, directory) -> threading.RLock:
        """Return the lock for *directory*, creating it if needed."""
        key = self._key(directory)
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextlib.contextmanager
    def hold(self, *directories):
        """Context manager holding the locks of all *directories*."""
        keys = sorted({self._key(d) for d in directories})
        with contextlib.ExitStack() as stack:
            for key in keys:
                stack.enter_context(self.get_lock(key))
            yield

    def __len__(self) -> int:
        return len(self._locks)
