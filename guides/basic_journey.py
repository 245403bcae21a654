"""Simple example walking one customer through the whole journey."""

import asyncio

from journeyflow import JourneyService, load_config
from journeyflow.models import ProductVisitRequest, SignupRequest


async def main():
    """Basic in-process journey example."""
    config = load_config()
    config.workflow.demo_mode = True

    async with JourneyService(config) as service:
        # Signup triggers the welcome email and arms the reminder timer
        customer = await service.submit_signup(
            SignupRequest(name="Alice", email="alice@example.com")
        )
        await service.wait_until_idle()

        # A product visit triggers the discount email
        await service.submit_product_visit(
            customer.id,
            ProductVisitRequest(product_id="P1", product_name="Trail Shoe", category="Shoes"),
        )
        await service.wait_until_idle()

        # Skip the quiet period instead of waiting for the reminder
        await service.force_advance_time(customer.id)
        await service.wait_until_idle()

        status = await service.get_workflow_status(customer.id)
        print(f"✅ Journey finished for {customer.name}")
        print(f"📋 Completed steps: {status.completed_steps}")
        for notification in service.list_notifications(customer.id):
            print(f"📧 {notification.email_type}: {notification.email.subject}")


if __name__ == "__main__":
    asyncio.run(main())
