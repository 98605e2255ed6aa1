"""
Stop-sequence gating for fragment streams.

Fragments are buffered while they could still turn into a stop sequence.
When the buffer starts with a stop sequence the stream ends for good and
nothing from the buffer is emitted.
"""

import threading
from typing import Iterable, Iterator, List, Optional


class StopFilter:
    """
    Iterator wrapper that suppresses stop sequences.

    Args:
        inner: Iterable of text fragments
        stop_words: Stop sequences; empty strings are ignored
    """

    def __init__(self, inner: Iterable[str], stop_words: Iterable[str] = ()):
        self.inner = inner
        self._it = iter(inner)
        self.stop_words: List[str] = [w for w in stop_words if w]
        self.working_buffer = ""
        self.fused = False
        self.matched: Optional[str] = None
        # Held for the duration of one pull so close() never races it
        self._lock = threading.Lock()

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        with self._lock:
            return self._pull()

    def _pull(self) -> str:
        if self.fused:
            raise StopIteration

        while True:
            try:
                fragment = next(self._it)
            except StopIteration:
                # Held partial match is dropped
                self.fused = True
                self.working_buffer = ""
                raise

            self.working_buffer += fragment

            hit = next((w for w in self.stop_words if self.working_buffer.startswith(w)), None)
            if hit is not None:
                self.matched = hit
                self.working_buffer = ""
                self._close_inner()
                raise StopIteration

            if any(w.startswith(self.working_buffer) for w in self.stop_words):
                continue

            out, self.working_buffer = self.working_buffer, ""
            return out

    def close(self) -> None:
        """
        Stop pulling and release the inner iterator.

        Safe to call from another thread while a pull is running: it waits
        for that step to finish first.
        """
        self.fused = True
        with self._lock:
            self._close_inner()

    def _close_inner(self) -> None:
        self.fused = True
        close = getattr(self._it, "close", None)
        if close is not None:
            close()
