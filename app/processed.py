import logging

logger = logging.getLogger(__name__)


class ProcessedCallCache:
    """Bounded, insertion-ordered set of call ids handled by this process.

    Once it grows past ``max_size`` only the ``keep`` most recently added ids
    survive. Not persisted: after a restart the stored
    ``transcript_fetched_at`` column is what prevents reprocessing.
    """

    def __init__(self, max_size: int = 1000, keep: int = 500) -> None:
        if keep > max_size:
            raise ValueError("keep must not exceed max_size")
        self._ids: dict[str, None] = {}
        self._max_size = max_size
        self._keep = keep

    def __contains__(self, call_id: object) -> bool:
        return call_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def add(self, call_id: str) -> None:
        self._ids.setdefault(call_id, None)
        self._evict()

    def clear(self) -> None:
        self._ids.clear()

    def _evict(self) -> None:
        if len(self._ids) <= self._max_size:
            return
        recent = list(self._ids)[-self._keep:] if self._keep else []
        self._ids = dict.fromkeys(recent)
        logger.info("Trimmed processed call cache to %d ids", len(self._ids))
