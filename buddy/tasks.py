"""
Background work for the tutor.

Blocking calls (OpenAI requests, recording, synthesis) run on daemon threads.
Their results are handed back through a `post` function that the host wires
to its own event loop, so every state change still happens on one thread.
"""

import threading
import time
from typing import Any, Callable, Optional

from .logger import logger

Post = Callable[[Callable[[], None]], None]


def _call_now(fn: Callable[[], None]) -> None:
    fn()


class TaskRunner:
    """Runs blocking work on daemon threads and posts completions back."""

    def __init__(self, post: Optional[Post] = None) -> None:
        self._post = post or _call_now

    def post(self, fn: Callable[[], None]) -> None:
        """Queue `fn` to run on the host thread."""
        self._post(fn)

    def submit(
        self,
        name: str,
        work: Callable[[], Any],
        on_success: Callable[[Any], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        """
        Run `work` in the background.

        `on_success` receives the result, `on_error` the exception. Without
        an `on_error` handler a failure is only logged.
        """
        logger.task_start(name)

        def _run():
            start_time = time.perf_counter()
            try:
                result = work()
            except Exception as e:
                logger.task_error(name, str(e))
                if on_error is not None:
                    self._post(lambda error=e: on_error(error))
                return
            logger.task_complete(name, duration_ms=(time.perf_counter() - start_time) * 1000)
            self._post(lambda: on_success(result))

        thread = threading.Thread(target=_run, name=name, daemon=True)
        thread.start()

    def schedule(self, delay_s: float, fn: Callable[[], None]) -> None:
        """Post `fn` after `delay_s` seconds."""
        timer = threading.Timer(delay_s, lambda: self._post(fn))
        timer.daemon = True
        timer.start()


class InlineRunner(TaskRunner):
    """
    Runs everything synchronously on the calling thread.

    Used by tests and scripted sessions where deterministic ordering matters
    more than responsiveness. Delays are skipped.
    """

    def submit(self, name, work, on_success, on_error=None) -> None:
        try:
            result = work()
        except Exception as e:
            logger.task_error(name, str(e))
            if on_error is not None:
                on_error(e)
            return
        on_success(result)

    def schedule(self, delay_s: float, fn: Callable[[], None]) -> None:
        fn()
