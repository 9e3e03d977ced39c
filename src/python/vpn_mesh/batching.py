"""Batch scheduling for rate-limited resource creation."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Sequence, TypeVar

from .engine import ResourceHandle
from .errors import ConfigurationError

LOG = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_BATCH_SIZE = 2


class BatchScheduler:
    """Create items in fixed-size batches, chaining each batch on the previous one.

    Every item of batch ``k + 1`` is created with ``depends_on`` set to the
    gate handles returned for batch ``k``, so the provisioning engine never
    has more than ``batch_size`` of these requests in flight.  This is a
    sequencing policy only: throttled calls are retried (or not) by the
    engine.
    """

    def __init__(self, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        if batch_size < 1:
            raise ConfigurationError(f"Batch size must be at least 1, got {batch_size}")
        self.batch_size = batch_size

    def batches(self, items: Sequence[T]) -> list[Sequence[T]]:
        return [items[i : i + self.batch_size] for i in range(0, len(items), self.batch_size)]

    def run(
        self,
        items: Sequence[T],
        create: Callable[[T, int, tuple[ResourceHandle, ...]], R],
        gate: Callable[[R], Iterable[ResourceHandle]],
    ) -> list[R]:
        """Create ``items`` batch by batch.

        Args:
            items: Items to create, in order
            create: Called as ``create(item, index, depends_on)``
            gate: Returns the handles the next batch must wait for

        Returns:
            Results of ``create`` in item order
        """
        results: list[R] = []
        previous: tuple[ResourceHandle, ...] = ()
        for number, batch in enumerate(self.batches(items)):
            offset = number * self.batch_size
            LOG.debug("Creating batch %d (%d items)", number + 1, len(batch))
            batch_results = [create(item, offset + i, previous) for i, item in enumerate(batch)]
            previous = tuple(handle for result in batch_results for handle in gate(result))
            results.extend(batch_results)
        return results
