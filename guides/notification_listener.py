"""Listen for sent emails on a shared transport.

Run the API with a networked backend, for example::

    JOURNEYFLOW_TRANSPORT=kafka journeyflow serve

then start this script with the same settings to print each email as the
workflow engine sends it.
"""

import asyncio

from journeyflow import EventBus, load_config
from journeyflow.contracts import EventType
from journeyflow.transports import get_transport


async def print_email(topic, event, metadata):
    if event.type != EventType.EMAIL_SENT:
        return
    payload = event.payload()
    print(f"📧 {payload.email_type} email to {payload.email.to}: {payload.email.subject}")


async def main():
    config = load_config()
    bus = EventBus(get_transport(config=config))
    await bus.connect()
    await bus.subscribe([config.topics.email_notifications], print_email)
    print(f"👂 Listening on {config.topics.email_notifications}")
    try:
        await asyncio.Event().wait()
    finally:
        await bus.close()


if __name__ == "__main__":
    asyncio.run(main())
