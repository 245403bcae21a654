"""Email templates for each journey action."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from jinja2 import StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

from ..models import StepAction

_env = SandboxedEnvironment(undefined=StrictUndefined, autoescape=True)


@dataclass(frozen=True)
class NotificationTemplate:
    email_type: str
    subject: str
    body: str

    def render(self, **context: Any) -> str:
        return _env.from_string(self.body).render(**context)


WELCOME = NotificationTemplate(
    email_type="welcome",
    subject="Welcome to Our Platform!",
    body="""
<h2>Welcome {{ customer.name }}!</h2>
<p>Thank you for joining our platform. We're excited to have you on board!</p>
<p>Here's what you can expect:</p>
<ul>
  <li>Personalized product recommendations</li>
  <li>Exclusive deals and offers</li>
  <li>Lightning-fast customer support</li>
</ul>
<p>Start exploring now and discover amazing products tailored just for you!</p>
<p>Happy shopping!</p>
""",
)

DISCOUNT = NotificationTemplate(
    email_type="discount",
    subject="Special 20% Discount Just for You!",
    body="""
<h2>Hi {{ customer.name }}!</h2>
<p>We noticed you were interested in our {{ product_category }}.</p>
<div style="background: #f0f8ff; padding: 20px; margin: 20px 0; border-radius: 8px;">
  <h3>Special Offer: 20% OFF</h3>
  <p><strong>Discount Code: {{ discount_code }}</strong></p>
  <p>Valid until: {{ expiry_date }}</p>
</div>
<p>Don't miss out on this exclusive offer! Use your discount code at checkout.</p>
""",
)

REMINDER = NotificationTemplate(
    email_type="reminder",
    subject="We Miss You! Come Back for Exclusive Offers",
    body="""
<h2>Hi {{ customer.name }},</h2>
<p>We haven't seen you in a while and wanted to check in!</p>
<p>Here's what's new since your last visit:</p>
<ul>
  <li>New product collections</li>
  <li>Enhanced loyalty rewards</li>
  <li>Improved user experience</li>
</ul>
<div style="background: #fff3cd; padding: 20px; margin: 20px 0; border-radius: 8px;">
  <h3>Welcome Back Offer</h3>
  <p><strong>Get 15% OFF your next purchase!</strong></p>
  <p>Code: {{ reminder_code }}</p>
</div>
""",
)

TEMPLATES: Dict[StepAction, NotificationTemplate] = {
    StepAction.SEND_WELCOME_EMAIL: WELCOME,
    StepAction.SEND_DISCOUNT_EMAIL: DISCOUNT,
    StepAction.SEND_REMINDER_EMAIL: REMINDER,
}
