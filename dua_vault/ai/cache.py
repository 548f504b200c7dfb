"""
Thread-safe in-process cache for validated backend responses.
"""

import base64
import hashlib
import logging
import threading
from collections import OrderedDict
from typing import Any, Hashable, Optional

logger = logging.getLogger(__name__)


def text_key(kind: str, text: str) -> tuple[str, str]:
    return (kind, (text or "").strip())


def image_key(kind: str, payload: bytes, prefix_chars: Optional[int] = None, *extra: Hashable) -> tuple:
    """
    Fingerprint an encoded image.

    With ``prefix_chars`` the key is a bounded prefix of the base64 payload,
    which is cheap but can collide; otherwise it is a SHA-256 digest.
    """
    if prefix_chars:
        encoded = base64.b64encode(payload).decode("ascii")
        fingerprint = f"{len(encoded)}:{encoded[:prefix_chars]}"
    else:
        fingerprint = hashlib.sha256(payload).hexdigest()
    return (kind, fingerprint) + extra


class ResponseCache:
    """
    Last-successful-write-wins store keyed by (operation kind, canonical input).

    Unbounded unless ``max_entries`` is set, in which case the oldest
    entries are evicted first.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self._data: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            if key in self._data:
                self.hits += 1
                return self._data[key]
            self.misses += 1
            return None

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            if self.max_entries is not None:
                while len(self._data) > self.max_entries:
                    evicted, _ = self._data.popitem(last=False)
                    logger.debug("Evicted cache entry for %s", evicted[0] if isinstance(evicted, tuple) else evicted)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data
