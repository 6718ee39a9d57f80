"""Bounded-parallelism map shared by every fan-out stage.

Every "call the remote API once per element" step (businesses to accounts,
accounts to ads, the insights matrix, per-record warehouse inserts) goes
through BoundedExecutor so the number of in-flight calls never exceeds the
configured limit.
"""

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Sequence, Tuple, TypeVar

from loguru import logger

from ads_insights.core.config import FailurePolicy
from ads_insights.core.exceptions import ConfigurationError

T = TypeVar("T")
R = TypeVar("R")


class BatchFailure(Exception):
    """Raised under FailurePolicy.CONTINUE when some units failed.

    Attributes:
        errors: (item, exception) pairs, in completion order
    """

    def __init__(self, errors: Sequence[Tuple[object, BaseException]]):
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} unit(s) failed")


class BoundedExecutor:
    """Runs a function over a collection with at most ``max_workers`` in flight.

    Results come back in completion order; callers correlate by identity,
    not by position.
    """

    def __init__(self, max_workers: int, name: str = "insights"):
        if max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        self.max_workers = max_workers
        self.name = name

    def map(
        self,
        fn: Callable[[T], R],
        items: Iterable[T],
        policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    ) -> List[R]:
        """Apply ``fn`` to every item.

        Args:
            fn: Unit of work, typically one remote call
            items: Inputs
            policy: FAIL_FAST cancels not-yet-started units on the first error
                    and re-raises it; CONTINUE runs everything and raises
                    BatchFailure if anything failed

        Returns:
            One result per item, in completion order
        """
        items = list(items)
        if not items:
            return []

        workers = min(self.max_workers, len(items))
        logger.debug(f"[{self.name}] running {len(items)} units on {workers} worker(s)")

        results: List[R] = []
        errors: List[Tuple[T, BaseException]] = []

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=self.name) as executor:
            future_to_item: Dict[Future, T] = {executor.submit(fn, item): item for item in items}

            for future in as_completed(future_to_item):
                item = future_to_item[future]
                try:
                    results.append(future.result())
                except Exception as e:
                    if policy is FailurePolicy.FAIL_FAST:
                        cancelled = sum(1 for f in future_to_item if f.cancel())
                        logger.error(
                            f"[{self.name}] unit failed, cancelled {cancelled} pending unit(s): {e}"
                        )
                        raise
                    errors.append((item, e))

        if errors:
            logger.error(f"[{self.name}] {len(errors)}/{len(items)} unit(s) failed")
            raise BatchFailure(errors)

        return results

    def flat_map(
        self,
        fn: Callable[[T], Iterable[R]],
        items: Iterable[T],
        policy: FailurePolicy = FailurePolicy.FAIL_FAST,
    ) -> List[R]:
        """Like map, for units returning collections; flattens one level."""
        return [result for batch in self.map(fn, items, policy) for result in batch]
