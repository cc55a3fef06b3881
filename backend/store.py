import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class ProcessedFileStore:
    """In-memory hand-off of processed workbooks between /api/process and /api/download.

    Entries expire ``ttl`` seconds after they are stored; expired entries
    are purged whenever the store is touched.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._files: Dict[str, Tuple[float, bytes]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            self._purge()
            return len(self._files)

    def _purge(self):
        now = self._clock()
        expired = [name for name, (stored, _) in self._files.items() if now - stored > self.ttl]
        for name in expired:
            del self._files[name]
            logger.info("Cleaned up expired file: %s", name)

    def put(self, filename: str, content: bytes):
        """Store ``content``; a name that is still live is never overwritten."""
        with self._lock:
            self._purge()
            if filename in self._files:
                raise KeyError(f"{filename} is already stored")
            self._files[filename] = (self._clock(), content)

    def pop(self, filename: str) -> Optional[bytes]:
        with self._lock:
            self._purge()
            entry = self._files.pop(filename, None)
        return entry[1] if entry else None
