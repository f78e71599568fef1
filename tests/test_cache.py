import threading

import pytest

from smb_metrics.cache import MetricsMemoizer, compute_dataset_version, range_key
from smb_metrics.metrics import compute_metrics
from smb_metrics.records import TransactionRecord


class _CountingCompute:
    def __init__(self) -> None:
        self.calls = []

    def __call__(self, transactions, expenses, date_range=None, **kwargs):
        self.calls.append((transactions, expenses, date_range, kwargs))
        return object()


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


TXS = [{"amount": 100, "date": "2024/01/02"}]
EXPS = [{"amount": 40, "date": "2024/01/03"}]


def test_dataset_version_is_stable_and_sensitive() -> None:
    v1 = compute_dataset_version(TXS, EXPS)
    assert v1 == compute_dataset_version(list(TXS), list(EXPS))
    assert len(v1) == 64

    assert v1 != compute_dataset_version([{"amount": 101, "date": "2024/01/02"}], EXPS)
    assert v1 != compute_dataset_version(EXPS, TXS)
    # Records and dates hash through their str() form.
    assert compute_dataset_version([TransactionRecord("2024/01/01", 1.0)], None)


def test_range_key_canonicalizes_spellings() -> None:
    assert range_key({"start": "2024/01/01", "end": "2024-01-31"}) == (
        "2024/01/01",
        "2024/01/31",
    )
    assert range_key(("01/01/2024", "31/01/2024")) == ("2024/01/01", "2024/01/31")
    assert range_key(None) is None


def test_memoizer_returns_cached_result() -> None:
    compute = _CountingCompute()
    memo = MetricsMemoizer(compute)

    first = memo(TXS, EXPS, {"start": "2024/01/01", "end": "2024/01/31"})
    second = memo(TXS, EXPS, ("2024-01-01", "2024-01-31"))

    assert first is second
    assert len(compute.calls) == 1
    assert memo.hits == 1
    assert memo.misses == 1
    assert len(memo) == 1


def test_memoizer_keys_on_dataset_range_and_kwargs() -> None:
    compute = _CountingCompute()
    memo = MetricsMemoizer(compute)

    memo(TXS, EXPS)
    memo(TXS + [{"amount": 1}], EXPS)
    memo(TXS, EXPS, ("2024/01/01", "2024/01/31"))
    memo(TXS, EXPS, currency="USD")
    memo(TXS, EXPS, currency="USD")

    assert len(compute.calls) == 4
    assert compute.calls[-1][3] == {"currency": "USD"}


def test_explicit_dataset_version_skips_hashing() -> None:
    compute = _CountingCompute()
    memo = MetricsMemoizer(compute)

    memo(TXS, EXPS, dataset_version="rev-1")
    # Same declared version: the cached value wins even if the data differs.
    memo([], [], dataset_version="rev-1")
    memo([], [], dataset_version="rev-2")

    assert len(compute.calls) == 2


def test_lru_eviction() -> None:
    compute = _CountingCompute()
    memo = MetricsMemoizer(compute, max_entries=2)

    r1 = ("2024/01/01", "2024/01/31")
    r2 = ("2024/02/01", "2024/02/29")
    r3 = ("2024/03/01", "2024/03/31")

    memo(TXS, EXPS, r1)
    memo(TXS, EXPS, r2)
    memo(TXS, EXPS, r1)  # r1 becomes most recently used
    memo(TXS, EXPS, r3)  # evicts r2

    assert len(memo) == 2
    assert len(compute.calls) == 3

    memo(TXS, EXPS, r1)
    assert len(compute.calls) == 3
    memo(TXS, EXPS, r2)
    assert len(compute.calls) == 4


def test_ttl_expiry_with_injected_clock() -> None:
    compute = _CountingCompute()
    clock = _FakeClock()
    memo = MetricsMemoizer(compute, ttl_seconds=60, clock=clock)

    memo(TXS, EXPS)
    clock.now = 59.0
    memo(TXS, EXPS)
    assert len(compute.calls) == 1

    clock.now = 61.0
    memo(TXS, EXPS)
    assert len(compute.calls) == 2


def test_invalidate() -> None:
    compute = _CountingCompute()
    memo = MetricsMemoizer(compute)

    memo(TXS, EXPS, dataset_version="a")
    memo(TXS, EXPS, dataset_version="b")
    memo.invalidate("a")
    assert len(memo) == 1

    memo(TXS, EXPS, dataset_version="a")
    assert len(compute.calls) == 3

    memo.invalidate()
    assert len(memo) == 0


def test_iterators_are_materialized_before_hashing() -> None:
    compute = _CountingCompute()
    memo = MetricsMemoizer(compute)

    memo(iter(TXS), iter(EXPS))
    transactions, expenses, _, _ = compute.calls[0]
    assert transactions == TXS
    assert expenses == EXPS


@pytest.mark.parametrize(
    "kwargs", [{"max_entries": 0}, {"ttl_seconds": 0}, {"ttl_seconds": -1}]
)
def test_invalid_memoizer_parameters(kwargs) -> None:
    with pytest.raises(ValueError):
        MetricsMemoizer(_CountingCompute(), **kwargs)


def test_wraps_compute_metrics_and_is_thread_safe() -> None:
    memo = MetricsMemoizer(compute_metrics)
    results = []

    def worker() -> None:
        results.append(memo(TXS, EXPS, ("2024/01/01", "2024/01/31")))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 8
    assert all(r.as_dict() == results[0].as_dict() for r in results)
    assert results[0].financial.total_revenue == pytest.approx(100.0)
    assert len(memo) == 1
