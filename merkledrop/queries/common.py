import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypedDict, TypeVar, cast

import requests
from web3 import Web3

from merkledrop.env import RPC_URL
from merkledrop.errors import EmptyQueryError, TooManyLoopsError, TransientRpcError
from merkledrop.models import Config, EthereumAddress, GraphQL_Response

logger = logging.getLogger(__name__)

# python insantiates generics separate to function definition
T = TypeVar("T")

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# request failures that are worth another attempt, reverts are not in here
RETRYABLE_ERRORS = (TransientRpcError, requests.ConnectionError, requests.Timeout)


class RateLimiter:
    """
    Shared between every worker of a run: caps the number of in-flight requests
    and spaces request starts at least `min_interval_ms` apart.
    Each run owns its instance, nothing is global.
    """

    def __init__(self, max_concurrent: int, min_interval_ms: int = 0):
        self._semaphore = threading.BoundedSemaphore(max_concurrent)
        self._lock = threading.Lock()
        self._min_interval = min_interval_ms / 1000
        self._last_start = 0.0

    def __enter__(self):
        self._semaphore.acquire()
        if self._min_interval > 0:
            with self._lock:
                wait = self._last_start + self._min_interval - time.monotonic()
                if wait > 0:
                    time.sleep(wait)
                self._last_start = time.monotonic()
        return self

    def __exit__(self, *exc):
        self._semaphore.release()
        return False


@dataclass
class Clients:
    """Everything a component needs to talk to the outside world"""

    w3: Web3
    limiter: RateLimiter
    session: requests.Session = field(default_factory=requests.Session)

    @staticmethod
    def from_config(conf: Config, rpc_url: str = RPC_URL) -> "Clients":
        w3 = Web3(
            Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": conf.request_timeout})
        )
        return Clients(w3=w3, limiter=RateLimiter(conf.concurrency))


def is_retryable(e: Exception) -> bool:
    if isinstance(e, RETRYABLE_ERRORS):
        return True
    # web3's http provider raises for status, rate limits surface here
    if isinstance(e, requests.HTTPError) and e.response is not None:
        return e.response.status_code in RETRYABLE_STATUS_CODES
    return False


def backoff_ms(attempt: int, base_ms: int, cap_ms: int) -> int:
    """Delay before retry number `attempt` (1-indexed): base doubling each time, capped"""
    return min(base_ms * 2 ** (attempt - 1), cap_ms)


def with_retries(
    fn: Callable[..., T],
    *args,
    retries: int = 3,
    base_ms: int = 1000,
    cap_ms: int = 10_000,
    limiter: Optional[RateLimiter] = None,
    sleep: Callable[[float], Any] = time.sleep,
    **kwargs,
) -> T:
    """
    Call `fn` up to `retries` times, backing off exponentially between attempts.
    Only transport errors and rate limits are retried, the last one is re-raised.
    """
    for attempt in range(1, retries + 1):
        try:
            if limiter is None:
                return fn(*args, **kwargs)
            with limiter:
                return fn(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e) or attempt >= retries:
                raise
            delay = backoff_ms(attempt, base_ms, cap_ms)
            logger.warning(
                f"Attempt {attempt}/{retries} of {getattr(fn, '__name__', fn)} failed ({e}), retrying in {delay}ms"
            )
            # jitter so parallel workers don't retry in lockstep
            sleep((delay + random.uniform(0, 0.25 * delay)) / 1000)
    raise RuntimeError("unreachable")


def retry_policy(conf: Config, clients: Clients) -> dict[str, Any]:
    """Keyword arguments for `with_retries` taken from the run config"""
    return dict(
        retries=conf.max_retries,
        base_ms=conf.backoff_base_ms,
        cap_ms=conf.backoff_cap_ms,
        limiter=clients.limiter,
    )


def post_json(
    session: requests.Session, url: str, payload: dict[str, Any], timeout: int = 30
) -> Any:
    """POST and decode json, turning rate limits and gateway errors into `TransientRpcError`"""
    res = session.post(url, json=payload, timeout=timeout)
    if res.status_code in RETRYABLE_STATUS_CODES:
        raise TransientRpcError(f"HTTP {res.status_code} from {url}")
    res.raise_for_status()
    try:
        return res.json()
    except ValueError as e:
        raise TransientRpcError(f"Malformed response from {url}") from e


def call_view(
    w3: Web3,
    address: EthereumAddress,
    abi: list[dict[str, Any]],
    fn_name: str,
    *args,
    block: int,
) -> Any:
    """Read-only contract call at a given block"""
    contract = w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)  # type: ignore
    return getattr(contract.functions, fn_name)(*args).call(block_identifier=block)


class GraphQLConfig(TypedDict):
    """
    Typechecker for JSON/Dict data to be passed to the graph
    :param `query`: the query to send to The Graph
    :param `variables`: injected query params in dictionary format
    """

    query: str
    variables: dict[str, Any]


def extract_nested_graphql(res: GraphQL_Response, access_path: list[str]):
    """
    This function walks through a dictionary until it finds the data you want.

    For the graphql queries, this is typically an array of values that is limited in size
    (eg: we can only fetch 1000 positions at a time)

    :param `access_path`: in the format ['first_key', 'nested_key_level0', 'nested_key_level1', ....]
    :param `res`: api response from graphql. First key should be 'data'
    """
    deepcopy_access_path = deepcopy(access_path)
    current = res["data"]
    while len(deepcopy_access_path) > 0:
        current = current[deepcopy_access_path.pop(0)]
    return current


def _graphql_post(session: requests.Session, url: str, params: GraphQLConfig) -> GraphQL_Response:
    response = post_json(session, url, cast(dict, params))
    if not response:
        raise EmptyQueryError(f"No results for graph query to {url}")
    if "errors" in response:
        raise EmptyQueryError(
            f"Error in graph query to {url}: {cast(dict, response)['errors']}"
        )
    return response


def graphql_iterate_query(
    url: str,
    access_path: list[str],
    params: GraphQLConfig,
    max_loops: int = 1000,
    session: Optional[requests.Session] = None,
    **retry_kwargs,
) -> list[T]:
    """
    The graph allows fetching of Max 1000 results for subgraphs.
    This function chunks queries into batches then stops when it returns no results
    :param `url`: the subgraph endpoint
    :param `access_path`: eg ['positions'] - set of keys to fetch data
    :param `params`: GraphQL config such as the actual query and variables
    :param `retry_kwargs`: passed to `with_retries` for every page
    """
    session = session or requests.Session()

    response = with_retries(_graphql_post, session, url, params, **retry_kwargs)
    all_results: list[T] = list(extract_nested_graphql(response, access_path))

    current_batch = all_results
    loops = 0
    while len(current_batch) > 0:
        if loops > max_loops:
            raise TooManyLoopsError("graphql_iterate_query")
        params["variables"]["skip"] = len(all_results)
        response = with_retries(_graphql_post, session, url, params, **retry_kwargs)
        current_batch = extract_nested_graphql(response, access_path)
        all_results += current_batch
        loops += 1
    return all_results


def chunks(ls: list[T], size: int) -> list[list[T]]:
    return [ls[i : i + size] for i in range(0, len(ls), size)]


def fan_out(
    fn: Callable[[Any], T],
    items: list[Any],
    conf: Config,
    sleep: Callable[[float], Any] = time.sleep,
) -> list[T]:
    """
    Map `fn` over `items` with at most `conf.concurrency` workers, in batches of
    `conf.batch_size` separated by `conf.batch_delay_ms`. Results keep the input order.
    """
    results: list[T] = []
    batches = chunks(items, conf.batch_size)
    with ThreadPoolExecutor(max_workers=conf.concurrency) as executor:
        for i, batch in enumerate(batches):
            results += list(executor.map(fn, batch))
            if i + 1 < len(batches) and conf.batch_delay_ms > 0:
                sleep(conf.batch_delay_ms / 1000)
    return results
