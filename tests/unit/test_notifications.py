"""Tests for the notification dispatcher and templates."""

import random

import pytest
import pytest_asyncio

from journeyflow.bus import EventBus
from journeyflow.config import NotificationConfig
from journeyflow.constants import EMAIL_NOTIFICATIONS_TOPIC
from journeyflow.errors import DispatchError
from journeyflow.models import Customer, StepAction
from journeyflow.notifications import NotificationDispatcher
from journeyflow.notifications.dispatcher import DISCOUNT_CODE_PREFIXES, REMINDER_CODE
from journeyflow.transports import InMemoryTransport


@pytest_asyncio.fixture
async def dispatcher_setup():
    transport = InMemoryTransport()
    bus = EventBus(transport)
    await bus.connect()
    dispatcher = NotificationDispatcher(
        bus,
        NotificationConfig(min_delivery_delay=0.0, max_delivery_delay=0.0),
        rng=random.Random(0),
    )
    yield dispatcher, transport
    await bus.close()


@pytest.fixture
def customer() -> Customer:
    return Customer(name="Alice", email="alice@example.com")


@pytest.mark.asyncio
async def test_welcome_email_is_published(dispatcher_setup, customer):
    dispatcher, transport = dispatcher_setup

    result = await dispatcher.dispatch(StepAction.SEND_WELCOME_EMAIL, customer)

    assert result.action is StepAction.SEND_WELCOME_EMAIL
    assert result.email.to == "alice@example.com"
    assert result.email.type == "welcome"
    assert "Welcome Alice!" in result.email.html
    # EMAIL_REQUEST followed by EMAIL_SENT
    assert transport.pending(EMAIL_NOTIFICATIONS_TOPIC) == 2


@pytest.mark.asyncio
async def test_discount_email_mentions_category_and_code(dispatcher_setup, customer):
    dispatcher, _ = dispatcher_setup

    result = await dispatcher.dispatch(
        "SEND_DISCOUNT_EMAIL", customer, {"product": {"category": "Shoes"}}
    )

    code = result.email.metadata["discount_code"]
    assert code.startswith(DISCOUNT_CODE_PREFIXES)
    assert code in result.email.html
    assert "Shoes" in result.email.html
    assert result.email.metadata["expiry_date"]


@pytest.mark.asyncio
async def test_discount_email_without_product_uses_default_category(dispatcher_setup, customer):
    dispatcher, _ = dispatcher_setup
    result = await dispatcher.dispatch(StepAction.SEND_DISCOUNT_EMAIL, customer)
    assert "amazing products" in result.email.html


@pytest.mark.asyncio
async def test_reminder_email_carries_reminder_code(dispatcher_setup, customer):
    dispatcher, _ = dispatcher_setup
    result = await dispatcher.dispatch(StepAction.SEND_REMINDER_EMAIL, customer)
    assert REMINDER_CODE in result.email.html


@pytest.mark.asyncio
async def test_customer_name_is_escaped(dispatcher_setup):
    dispatcher, _ = dispatcher_setup
    customer = Customer(name="<b>Eve</b>", email="eve@example.com")
    result = await dispatcher.dispatch(StepAction.SEND_WELCOME_EMAIL, customer)
    assert "<b>Eve</b>" not in result.email.html
    assert "&lt;b&gt;Eve&lt;/b&gt;" in result.email.html


@pytest.mark.asyncio
async def test_unknown_action_is_not_retryable(dispatcher_setup, customer):
    dispatcher, transport = dispatcher_setup
    with pytest.raises(DispatchError) as exc_info:
        await dispatcher.dispatch("SEND_SMS", customer)
    assert exc_info.value.retryable is False
    assert transport.pending(EMAIL_NOTIFICATIONS_TOPIC) == 0


@pytest.mark.asyncio
async def test_bus_failure_is_retryable_dispatch_error(customer):
    bus = EventBus(InMemoryTransport())
    dispatcher = NotificationDispatcher(
        bus, NotificationConfig(min_delivery_delay=0.0, max_delivery_delay=0.0)
    )
    with pytest.raises(DispatchError) as exc_info:
        await dispatcher.dispatch(StepAction.SEND_WELCOME_EMAIL, customer)
    assert exc_info.value.retryable is True
    assert exc_info.value.action == "SEND_WELCOME_EMAIL"
