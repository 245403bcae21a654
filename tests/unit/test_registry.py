"""Tests for the customer registry."""

import asyncio

import pytest

from journeyflow.errors import NotFoundError
from journeyflow.models import Customer
from journeyflow.registry import CustomerRegistry


def _customer(name: str) -> Customer:
    return Customer(name=name, email=f"{name.lower()}@example.com")


@pytest.mark.asyncio
async def test_create_get_and_list_in_insertion_order():
    registry = CustomerRegistry()
    alice, bob = _customer("Alice"), _customer("Bob")

    assert await registry.create(alice) is True
    assert await registry.create(bob) is True
    assert await registry.create(alice) is False

    fetched = await registry.get(alice.id)
    assert fetched is not None and fetched.name == "Alice"
    assert [c.name for c in await registry.list()] == ["Alice", "Bob"]
    assert len(registry) == 2
    assert await registry.get("missing") is None


@pytest.mark.asyncio
async def test_reads_are_snapshots():
    registry = CustomerRegistry()
    alice = _customer("Alice")
    await registry.create(alice)

    snapshot = await registry.get(alice.id)
    snapshot.metadata["tampered"] = True
    snapshot.workflow_state.completed_steps.add(1)

    stored = await registry.get(alice.id)
    assert "tampered" not in stored.metadata
    assert stored.workflow_state.completed_steps == set()


@pytest.mark.asyncio
async def test_update_mutates_and_returns_result():
    registry = CustomerRegistry()
    alice = _customer("Alice")
    await registry.create(alice)

    def rename(customer: Customer) -> str:
        customer.name = "Alicia"
        return customer.name

    assert await registry.update(alice.id, rename) == "Alicia"
    assert (await registry.get(alice.id)).name == "Alicia"


@pytest.mark.asyncio
async def test_update_unknown_customer_raises():
    registry = CustomerRegistry()
    with pytest.raises(NotFoundError) as exc_info:
        await registry.update("missing", lambda customer: None)
    assert exc_info.value.customer_id == "missing"


@pytest.mark.asyncio
async def test_updates_for_one_customer_are_serialized():
    registry = CustomerRegistry()
    alice = _customer("Alice")
    await registry.create(alice)
    active = 0
    overlaps = 0

    async def slow_mutation(customer: Customer) -> None:
        nonlocal active, overlaps
        active += 1
        if active > 1:
            overlaps += 1
        await asyncio.sleep(0.01)
        active -= 1

    await asyncio.gather(*(registry.update(alice.id, slow_mutation) for _ in range(5)))
    assert overlaps == 0


@pytest.mark.asyncio
async def test_updates_for_different_customers_do_not_block_each_other():
    registry = CustomerRegistry()
    alice, bob = _customer("Alice"), _customer("Bob")
    await registry.create(alice)
    await registry.create(bob)
    bob_done = asyncio.Event()

    async def wait_for_bob(customer: Customer) -> None:
        await bob_done.wait()

    async def release(customer: Customer) -> None:
        bob_done.set()

    await asyncio.wait_for(
        asyncio.gather(registry.update(alice.id, wait_for_bob), registry.update(bob.id, release)),
        timeout=1,
    )
