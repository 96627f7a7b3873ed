import threading
import time
from unittest.mock import Mock

import pytest
import requests

from merkledrop.errors import EmptyQueryError, TooManyLoopsError, TransientRpcError
from merkledrop.queries import (
    RateLimiter,
    backoff_ms,
    fan_out,
    graphql_iterate_query,
    is_retryable,
    with_retries,
)
from merkledrop.test.conftest import MockResponse


@pytest.mark.parametrize(
    "attempt, expected",
    [(1, 1000), (2, 2000), (3, 4000), (4, 8000), (5, 10_000), (10, 10_000)],
)
def test_backoff_doubles_up_to_cap(attempt, expected):
    assert backoff_ms(attempt, 1000, 10_000) == expected


def test_retries_transient_errors():
    sleeps = []
    fn = Mock(side_effect=[TransientRpcError("429"), requests.ConnectionError(), "ok"])

    result = with_retries(fn, "arg", retries=3, base_ms=100, cap_ms=1000, sleep=sleeps.append)

    assert result == "ok"
    assert fn.call_count == 3
    fn.assert_called_with("arg")
    assert len(sleeps) == 2
    # jitter adds at most a quarter of the delay
    assert 0.1 <= sleeps[0] <= 0.125
    assert 0.2 <= sleeps[1] <= 0.25


def test_gives_up_after_max_retries():
    fn = Mock(side_effect=TransientRpcError("503"))

    with pytest.raises(TransientRpcError):
        with_retries(fn, retries=4, base_ms=0, sleep=lambda s: None)
    assert fn.call_count == 4


def test_does_not_retry_reverts():
    fn = Mock(side_effect=ValueError("execution reverted"))

    with pytest.raises(ValueError):
        with_retries(fn, retries=5, base_ms=0, sleep=lambda s: None)
    assert fn.call_count == 1


@pytest.mark.parametrize("status, retryable", [(429, True), (503, True), (404, False)])
def test_http_errors_retryable_by_status(status, retryable):
    e = requests.HTTPError(response=Mock(status_code=status))
    assert is_retryable(e) == retryable


def test_rate_limiter_caps_concurrency():
    limiter = RateLimiter(2)
    active = []
    peak = []
    lock = threading.Lock()

    def work():
        with limiter:
            with lock:
                active.append(1)
                peak.append(len(active))
            time.sleep(0.01)
            with lock:
                active.pop()

    threads = [threading.Thread(target=work) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert max(peak) <= 2


def test_fan_out_keeps_order_and_pauses_between_batches(config):
    sleeps = []
    conf = config.model_copy(update={"batch_size": 2, "batch_delay_ms": 50})

    results = fan_out(lambda x: x * 2, [1, 2, 3, 4, 5], conf, sleep=sleeps.append)

    assert results == [2, 4, 6, 8, 10]
    assert sleeps == [0.05, 0.05]


@pytest.fixture
def graph_params():
    return dict(query="query { positions }", variables={"skip": 0})


def graph_page(items):
    return MockResponse({"data": {"positions": items}})


def test_graphql_pages_until_empty(graph_params):
    session = Mock()
    session.post = Mock(
        side_effect=[graph_page([1, 2]), graph_page([3]), graph_page([])]
    )

    results = graphql_iterate_query(
        "http://graph", ["positions"], graph_params, session=session
    )

    assert results == [1, 2, 3]
    assert session.post.call_count == 3
    assert graph_params["variables"]["skip"] == 3


def test_graphql_errors_raise(graph_params):
    session = Mock()
    session.post = Mock(return_value=MockResponse({"errors": [{"message": "bad"}]}))

    with pytest.raises(EmptyQueryError):
        graphql_iterate_query("http://graph", ["positions"], graph_params, session=session)


def test_graphql_too_many_loops(graph_params):
    session = Mock()
    session.post = Mock(side_effect=lambda *args, **kwargs: graph_page([1]))

    with pytest.raises(TooManyLoopsError):
        graphql_iterate_query(
            "http://graph", ["positions"], graph_params, max_loops=2, session=session
        )
