# notifications/services.py
"""
Renter notifications.

Emails go through Django's send_mail (console backend in development).
Every attempt is logged as a Notification row. A delivery failure is
logged and recorded as FAILED; it is never raised to the caller, so a
broken mail server cannot roll back a payment or a late fee.
"""

import logging

from django.conf import settings
from django.core.mail import send_mail

from notifications.models import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Sends renter-facing accounting emails."""

    def send_payment_reminder(self, payment) -> Notification:
        lease = payment.recurring_payment.lease
        outstanding = payment.amount - payment.amount_paid
        subject = f"Payment reminder: {outstanding} due {payment.due_date.isoformat()}"
        body = (
            f"Hello {lease.tenant.full_name},\n\n"
            f"This is a reminder that a payment of {outstanding} for unit "
            f"{lease.unit.unit_number} at {lease.unit.property.name} is due on "
            f"{payment.due_date.isoformat()}.\n"
        )
        return self._send(
            company=lease.unit.property.company,
            tenant=lease.tenant,
            kind="payment_reminder",
            subject=subject,
            body=body,
            related=payment,
        )

    def send_late_fee_notice(self, late_fee) -> Notification:
        payment = late_fee.payment
        lease = payment.recurring_payment.lease
        subject = f"Late fee applied: {late_fee.amount}"
        body = (
            f"Hello {lease.tenant.full_name},\n\n"
            f"A late fee of {late_fee.amount} was applied to the payment due "
            f"{payment.due_date.isoformat()} ({late_fee.days_late} days late).\n"
        )
        return self._send(
            company=lease.unit.property.company,
            tenant=lease.tenant,
            kind="late_fee_applied",
            subject=subject,
            body=body,
            related=late_fee,
        )

    def send_late_fee_waived(self, late_fee) -> Notification:
        lease = late_fee.payment.recurring_payment.lease
        subject = f"Late fee waived: {late_fee.amount}"
        body = (
            f"Hello {lease.tenant.full_name},\n\n"
            f"The late fee of {late_fee.amount} has been waived.\n"
            f"Reason: {late_fee.waived_reason}\n"
        )
        return self._send(
            company=lease.unit.property.company,
            tenant=lease.tenant,
            kind="late_fee_waived",
            subject=subject,
            body=body,
            related=late_fee,
        )

    def send_deposit_receipt(self, trust_transaction) -> Notification:
        account = trust_transaction.trust_account
        tenant = trust_transaction.tenant
        subject = f"Deposit received: {trust_transaction.amount}"
        body = (
            f"Hello {tenant.full_name if tenant else ''},\n\n"
            f"We received {trust_transaction.amount} into {account.account_name} on "
            f"{trust_transaction.transaction_date.isoformat()}.\n"
        )
        return self._send(
            company=account.property.company,
            tenant=tenant,
            kind="deposit_receipt",
            subject=subject,
            body=body,
            related=trust_transaction,
        )

    # ------------------------------------------------------------------

    def _send(self, *, company, tenant, kind, subject, body, related) -> Notification:
        recipient = getattr(tenant, "email", "") or ""
        notification = Notification(
            company=company,
            tenant=tenant,
            kind=kind,
            recipient=recipient,
            subject=subject,
            body=body,
            related_object_type=related.__class__.__name__,
            related_object_id=related.pk,
        )

        if not recipient:
            notification.status = Notification.Status.SKIPPED
            notification.error = "Tenant has no email address"
            notification.save()
            logger.info("Notification skipped", extra={"kind": kind, "related_id": related.pk})
            return notification

        try:
            send_mail(
                subject=subject,
                message=body,
                from_email=settings.DEFAULT_FROM_EMAIL,
                recipient_list=[recipient],
                fail_silently=False,
            )
            notification.status = Notification.Status.SENT
            logger.info(f"{kind} email sent to {recipient}")
        except Exception as e:
            notification.status = Notification.Status.FAILED
            notification.error = str(e)
            logger.error(f"Failed to send {kind} email to {recipient}: {e}")

        notification.save()
        return notification
