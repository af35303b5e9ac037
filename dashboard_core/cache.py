from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, Sequence, Tuple

from dashboard_core.aggregation import ChartDataBundle, aggregate
from dashboard_core.filters import normalize_filters
from dashboard_core.records import ServiceRecord


logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 15


def _stamp_text(record: object) -> str:
    stamp = getattr(record, "registered_at", None)
    return stamp.isoformat() if stamp is not None else ""


def heuristic_signature(records: Sequence[ServiceRecord]) -> str:
    if not records:
        return "0__"
    return f"{len(records)}_{_stamp_text(records[0])}_{_stamp_text(records[-1])}"


def content_signature(records: Sequence[ServiceRecord]) -> str:
    digest = hashlib.sha1()
    for record in records:
        digest.update(repr(record).encode("utf-8", errors="replace"))
        digest.update(b"\x1e")
    return f"{len(records)}_{digest.hexdigest()}"


class AggregationCache:
    """Bounded memo in front of `aggregate`.

    The default key is only the record count plus the first and last
    `registered_at`, joined with the serialized filters. Two different
    datasets with the same length and boundary timestamps collide and the
    second one gets the first one's bundle. That is accepted in exchange for
    not hashing every record on each call; pass `strict=True` to key on a
    content hash instead, or `refresh=True` to recompute.

    Eviction is FIFO: the oldest inserted key goes first, hits do not move it.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CACHE_SIZE,
        *,
        strict: bool = False,
        compute: Callable[[Any, Any], ChartDataBundle] = aggregate,
    ) -> None:
        self.max_size = max(1, int(max_size))
        self.strict = strict
        self._compute = compute
        self._entries: "OrderedDict[str, ChartDataBundle]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def key_for(self, records: Sequence[ServiceRecord], filters: object) -> str:
        spec = normalize_filters(filters)
        data_part = content_signature(records) if self.strict else heuristic_signature(records)
        filter_part = json.dumps(spec.as_dict(), sort_keys=True)
        return f"{data_part}_{filter_part}"

    def aggregate(self, records: object, filters: object = None, *, refresh: bool = False) -> ChartDataBundle:
        if not isinstance(records, (list, tuple)):
            return self._compute(records, filters)

        try:
            key = self.key_for(records, filters)
        except Exception:
            logger.warning("Could not derive cache key; computing without cache", exc_info=True)
            return self._compute(records, filters)

        if not refresh:
            with self._lock:
                cached = self._entries.get(key)
                if cached is not None:
                    self.hits += 1
                    logger.debug("Chart cache hit (%d entries)", len(self._entries))
                    return cached

        bundle = self._compute(records, filters)
        with self._lock:
            self.misses += 1
            self._entries.pop(key, None)
            self._entries[key] = bundle
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted chart cache entry %s", evicted[:40])
        return bundle

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0
        logger.info("Chart cache cleared")

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            keys: Tuple[str, ...] = tuple(self._entries.keys())
            return {
                "size": len(keys),
                "max_size": self.max_size,
                "strict": self.strict,
                "hits": self.hits,
                "misses": self.misses,
                "keys": list(keys),
            }
