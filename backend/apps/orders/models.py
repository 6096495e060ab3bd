# apps/orders/models.py

import uuid
from django.db import models
from django.utils.translation import gettext_lazy as _
from apps.core.models import User


def generate_order_id():
    """Generate an opaque order key."""
    return uuid.uuid4().hex


class Order(models.Model):
    """
    Customer order as seen by the payments backend.

    Orders are created elsewhere (admin, storefront services); this app only
    moves their payment state forward when Stripe reports an outcome.
    """
    PAYMENT_UNPAID = 'unpaid'
    PAYMENT_PAID = 'paid'
    PAYMENT_FAILED = 'failed'
    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_UNPAID, 'Unpaid'),
        (PAYMENT_PAID, 'Paid'),
        (PAYMENT_FAILED, 'Failed'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    ORDER_STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    id = models.CharField(
        primary_key=True,
        max_length=128,
        default=generate_order_id,
        editable=False
    )

    user = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )

    # Status
    payment_status = models.CharField(
        max_length=20,
        choices=PAYMENT_STATUS_CHOICES,
        default=PAYMENT_UNPAID
    )
    order_status = models.CharField(
        max_length=20,
        choices=ORDER_STATUS_CHOICES,
        default=STATUS_PENDING
    )
    verified = models.BooleanField(default=False)

    # Payment
    currency = models.CharField(max_length=3, blank=True)
    stripe_payment_intent_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Stripe payment intent ID"
    )
    stripe_charge_id = models.CharField(max_length=255, blank=True)
    payment_error = models.TextField(blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'orders'
        verbose_name = _('Order')
        verbose_name_plural = _('Orders')
        indexes = [
            models.Index(fields=['user', 'created_at']),
            models.Index(fields=['payment_status', 'created_at']),
            models.Index(fields=['stripe_payment_intent_id']),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"Order {self.id}"

    @property
    def is_paid(self):
        """Check if order has been paid."""
        return self.payment_status == self.PAYMENT_PAID
