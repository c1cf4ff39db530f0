"""
Email Template Rendering

Payment emails are Jinja2 templates shipped inside the package
(app/templates/emails). Each email has an HTML and a plain-text body.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from app.core.config import get_settings
from app.models import EmailPayload, Transaction, TransactionItem


@dataclass
class RenderedEmail:
    subject: str
    body_html: str
    body_text: str


def format_currency(amount: int) -> str:
    """Rupiah formatting: 150000 -> 'Rp 150.000'."""
    return "Rp " + f"{amount:,}".replace(",", ".")


@lru_cache()
def get_template_environment() -> Environment:
    env = Environment(
        loader=PackageLoader("app", "templates"),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["currency"] = format_currency
    return env


_TEMPLATES = {
    EmailPayload.SUCCESS: ("emails/success", "Payment received - Order {id}"),
    EmailPayload.FAILURE: ("emails/failed", "Payment unsuccessful - Order {id}"),
}


def render_payment_email(
    payload: EmailPayload,
    transaction: Transaction,
    items: Iterable[TransactionItem],
) -> RenderedEmail:
    """Render the success or failure email for a transaction."""
    settings = get_settings()
    env = get_template_environment()
    template_name, subject = _TEMPLATES[payload]

    context = {
        "transaction": transaction,
        "items": list(items),
        "restaurant_name": settings.restaurant_name,
        "status": transaction.status.value,
    }

    return RenderedEmail(
        subject=f"{subject.format(id=transaction.id)} - {settings.restaurant_name}",
        body_html=env.get_template(f"{template_name}.html").render(**context),
        body_text=env.get_template(f"{template_name}.txt").render(**context),
    )
