import threading
from typing import Callable


class Once:
    """
    Runs a function at most once, no matter how many threads call `do`.

    Late arrivals block until the first call has finished, so every caller
    observes whatever the single run published. The run counts as done even
    when the function raises.
    """

    def __init__(self) -> None:
        self._done = False
        self._lock = threading.Lock()

    @property
    def done(self) -> bool:
        return self._done

    def do(self, fn: Callable[[], None]) -> None:
        if self._done:
            return
        with self._lock:
            if self._done:
                return
            try:
                fn()
            finally:
                self._done = True
