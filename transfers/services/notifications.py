"""
Fire-and-forget notices to dispatch and customers.

Sent after the surrounding transaction commits; a failed send is logged and
never undoes the status change that triggered it.
"""

import logging
from smtplib import SMTPException

from django.conf import settings
from django.core.mail import send_mail
from django.db import transaction

logger = logging.getLogger(__name__)


def _dispatch_recipients(order):
    recipients = [
        email
        for email in [
            order.company.notification_email,
            getattr(settings, "DISPATCH_NOTIFICATION_EMAIL", ""),
        ]
        if email
    ]
    return list(dict.fromkeys(recipients))


def _send(subject, body, recipients):
    if not recipients:
        return
    try:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, recipients)
    except (SMTPException, OSError) as exc:
        logger.warning("Notification %r could not be sent: %s", subject, exc)


def _on_commit(subject, body, recipients):
    transaction.on_commit(lambda: _send(subject, body, recipients))


def handoff_created(handoff):
    order = handoff.order
    _on_commit(
        f"[{order.order_number}] Vehicle parked for handoff",
        f"{handoff.created_by.full_name} left {order.license_plate or 'the vehicle'} "
        f"at {handoff.location}.\n\n{handoff.notes}".strip(),
        _dispatch_recipients(order),
    )


def handoff_accepted(handoff):
    order = handoff.order
    _on_commit(
        f"[{order.order_number}] Handoff accepted",
        f"{handoff.accepted_by.full_name} took over at {handoff.location}.",
        _dispatch_recipients(order),
    )


def order_completed(order, checklist):
    recipients = _dispatch_recipients(order)
    if order.customer_email:
        recipients.append(order.customer_email)
    _on_commit(
        f"[{order.order_number}] Vehicle delivered",
        f"The vehicle {order.license_plate} was handed over at {checklist.location or order.dropoff_location_label}.",
        recipients,
    )
