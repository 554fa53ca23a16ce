"""Cooperative cancellation for normalization runs."""

import threading
from typing import Optional

from .exceptions import PipelineCancelledError


class CancellationToken:
    """Flag shared between a caller and a running pipeline.

    The pipeline polls the token between stages; a cancelled run raises
    :class:`PipelineCancelledError` at the next check. Partial buffers of a
    cancelled run are discarded.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: Optional[str] = None) -> None:
        if self._event.is_set():
            raise PipelineCancelledError(stage=stage)
