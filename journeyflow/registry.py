"""In-memory customer registry with per-customer critical sections."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from .errors import NotFoundError
from .models import Customer

logger = logging.getLogger(__name__)

R = TypeVar("R")
Mutator = Callable[[Customer], Union[R, Awaitable[R]]]


class CustomerRegistry:
    """Authoritative store of customers and their workflow state.

    Reads return deep copies; only ``update`` mutators see the live entity,
    and they run under a lock private to that customer id. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._customers: Dict[str, Customer] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._customers)

    def __contains__(self, customer_id: object) -> bool:
        return customer_id in self._customers

    async def create(self, customer: Customer) -> bool:
        """Insert ``customer``; returns ``False`` if the id already exists."""
        if customer.id in self._customers:
            return False
        self._customers[customer.id] = customer.model_copy(deep=True)
        self._locks[customer.id] = asyncio.Lock()
        return True

    async def get(self, customer_id: str) -> Optional[Customer]:
        customer = self._customers.get(customer_id)
        return customer.model_copy(deep=True) if customer else None

    async def list(self) -> List[Customer]:
        """Return all customers in insertion order."""
        return [c.model_copy(deep=True) for c in self._customers.values()]

    async def update(self, customer_id: str, mutator: Mutator[R]) -> R:
        """Apply ``mutator`` to the live customer inside its critical section.

        ``mutator`` may be a plain function or a coroutine function; the lock
        is held until it completes.

        Raises:
            NotFoundError: If ``customer_id`` is unknown.
        """
        lock = self._locks.get(customer_id)
        if lock is None:
            raise NotFoundError(customer_id)
        async with lock:
            customer = self._customers[customer_id]
            result = mutator(customer)
            if inspect.isawaitable(result):
                result = await result
            return result
