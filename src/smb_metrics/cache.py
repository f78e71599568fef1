# SMB Metrics - Financial metrics aggregation engine for SMB dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Result memoization for SMB Metrics.

The engine itself is stateless. Callers that render the same report
repeatedly (dashboards refreshing several charts off one dataset) can wrap
``compute_metrics`` in a ``MetricsMemoizer``:

    memo = MetricsMemoizer(compute_metrics, max_entries=32, ttl_seconds=300)
    snapshot = memo(transactions, expenses, {"start": ..., "end": ...})

Entries are keyed by ``(dataset_version, range key, extra key)``:

- ``dataset_version`` is either supplied by the caller (e.g. a sheet
  revision id) or derived with ``compute_dataset_version``, a SHA-256 over
  the JSON dump of the inputs;
- the range key is the canonical (start, end) pair, so equivalent range
  spellings share an entry;
- the extra key covers any keyword arguments forwarded to the callable.

The store is a bounded LRU with an optional TTL, guarded by a lock so one
memoizer can be shared between threads.
"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable
from typing import Any, Optional

from .dates import date_to_key
from .logging_setup import get_logger
from .periods import DateRange

_logger = get_logger("smb_metrics.cache")

CacheKey = tuple[str, Optional[tuple[str, str]], str]


def compute_dataset_version(
    transactions: Optional[Iterable[Any]], expenses: Optional[Iterable[Any]]
) -> str:
    """
    Return a stable identifier for a (transactions, expenses) dataset.

    The digest is order-sensitive and changes whenever any record changes.
    Values JSON cannot encode (dates, Decimals, records) are hashed through
    their ``str()`` form.
    """
    payload = {
        "transactions": list(transactions or ()),
        "expenses": list(expenses or ()),
    }
    data = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def range_key(date_range: Any) -> Optional[tuple[str, str]]:
    """Canonical (start, end) key for anything ``DateRange.parse`` accepts."""
    parsed = DateRange.parse(date_range)
    if parsed is None:
        return None
    return date_to_key(parsed.start), date_to_key(parsed.end)


class MetricsMemoizer:
    """
    Bounded, thread-safe memoizer around a metrics callable.

    Parameters
    ----------
    compute :
        Callable with the ``compute_metrics`` signature
        ``(transactions, expenses, date_range=None, **kwargs)``.
    max_entries :
        Maximum number of cached results; least recently used go first.
    ttl_seconds :
        Optional lifetime of an entry. None keeps entries until evicted.
    clock :
        Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        compute: Callable[..., Any],
        max_entries: int = 32,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1.")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive.")

        self._compute = compute
        self._max_entries = max_entries
        self._ttl = ttl_seconds
        self._clock = clock
        self._store: "OrderedDict[CacheKey, tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def _key(
        self,
        transactions: Any,
        expenses: Any,
        date_range: Any,
        dataset_version: Optional[str],
        kwargs: dict[str, Any],
    ) -> CacheKey:
        version = dataset_version or compute_dataset_version(transactions, expenses)
        extra = repr(sorted(kwargs.items()))
        return version, range_key(date_range), extra

    def __call__(
        self,
        transactions: Optional[Iterable[Any]],
        expenses: Optional[Iterable[Any]],
        date_range: Any = None,
        *,
        dataset_version: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        # Materialize once: iterators would be exhausted by hashing.
        transactions = list(transactions or ())
        expenses = list(expenses or ())
        key = self._key(transactions, expenses, date_range, dataset_version, kwargs)
        now = self._clock()

        with self._lock:
            entry = self._store.get(key)
            if entry is not None:
                stored_at, value = entry
                if self._ttl is None or now - stored_at < self._ttl:
                    self._store.move_to_end(key)
                    self.hits += 1
                    return value
                del self._store[key]
            self.misses += 1

        _logger.debug("Cache miss for dataset %s range %s", key[0][:12], key[1])
        value = self._compute(transactions, expenses, date_range, **kwargs)

        with self._lock:
            self._store[key] = (now, value)
            self._store.move_to_end(key)
            while len(self._store) > self._max_entries:
                self._store.popitem(last=False)
        return value

    def invalidate(self, dataset_version: Optional[str] = None) -> None:
        """Drop every entry, or only those of one dataset version."""
        with self._lock:
            if dataset_version is None:
                self._store.clear()
                return
            for key in [k for k in self._store if k[0] == dataset_version]:
                del self._store[key]
