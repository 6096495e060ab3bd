# apps/core/models.py

import uuid

from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.db import models
from django.utils.translation import gettext_lazy as _


def generate_user_id():
    """Generate an opaque user identity key."""
    return uuid.uuid4().hex


class UserManager(BaseUserManager):
    """
    Custom user manager. Users are keyed by an external identity string
    (issued by the client's auth provider), email is optional.
    """

    def create_user(self, email=None, password=None, **extra_fields):
        """
        Create and save a regular user. Pass `id` to use a known identity key.
        """
        email = self.normalize_email(email) if email else ''
        extra_fields.setdefault('username', extra_fields.get('id') or email or None)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email=None, password=None, **extra_fields):
        """
        Create and save a superuser (Django admin access).
        """
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))

        return self.create_user(email, password, **extra_fields)


class User(AbstractUser):
    """
    Custom User model extending AbstractUser.
    Carries the Stripe customer link, the wallet balance and order history.
    """
    id = models.CharField(
        primary_key=True,
        max_length=128,
        default=generate_user_id,
        editable=False
    )

    # Override username to make it optional and non-unique
    username = models.CharField(
        _('username'),
        max_length=150,
        unique=False,
        blank=True,
        null=True,
    )

    email = models.EmailField(_('email address'), blank=True)

    stripe_customer_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Stripe customer ID, created lazily"
    )

    # Wallet balance in minor currency units (pence)
    wallet_balance = models.PositiveIntegerField(default=0)

    default_payment_method = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe payment method ID of the default card"
    )

    order_history = models.JSONField(
        default=list,
        blank=True,
        help_text="IDs of orders paid by this user"
    )

    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'id'
    REQUIRED_FIELDS = []

    # Use custom manager
    objects = UserManager()

    class Meta:
        db_table = 'users'
        verbose_name = _('User')
        verbose_name_plural = _('Users')

    def __str__(self):
        return self.email or self.id


class SavedCard(models.Model):
    """
    Summary of a card saved with Stripe for a user.
    """
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='saved_cards'
    )
    payment_method_id = models.CharField(max_length=255)
    brand = models.CharField(max_length=50, blank=True)
    last4 = models.CharField(max_length=4, blank=True)
    exp_month = models.PositiveSmallIntegerField(null=True, blank=True)
    exp_year = models.PositiveSmallIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'saved_cards'
        verbose_name = _('Saved card')
        verbose_name_plural = _('Saved cards')
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'payment_method_id'],
                name='unique_saved_card_per_user'
            ),
        ]

    def __str__(self):
        return f"{self.brand} •••• {self.last4}"


class WalletTransaction(models.Model):
    """
    Append-only wallet ledger entry.
    """
    TYPE_DEPOSIT = 'deposit'
    TYPE_PAYMENT = 'payment'
    TYPE_CHOICES = [
        (TYPE_DEPOSIT, 'Deposit'),
        (TYPE_PAYMENT, 'Order payment'),
    ]

    STATUS_COMPLETED = 'completed'
    STATUS_CHOICES = [
        (STATUS_COMPLETED, 'Completed'),
    ]

    METHOD_SAVED_CARD = 'saved_card'
    METHOD_NEW_CARD = 'new_card'
    METHOD_WALLET = 'wallet'
    METHOD_CHOICES = [
        (METHOD_SAVED_CARD, 'Saved card'),
        (METHOD_NEW_CARD, 'New card'),
        (METHOD_WALLET, 'Wallet'),
    ]

    user = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='wallet_transactions'
    )
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    amount = models.PositiveIntegerField()
    previous_balance = models.PositiveIntegerField()
    new_balance = models.PositiveIntegerField()
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_COMPLETED
    )
    description = models.CharField(max_length=255, blank=True)

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True
    )
    stripe_charge_id = models.CharField(max_length=255, null=True, blank=True)
    payment_method = models.CharField(
        max_length=20,
        choices=METHOD_CHOICES,
        blank=True
    )
    save_card = models.BooleanField(default=False)
    order_id = models.CharField(max_length=128, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'wallet_transactions'
        verbose_name = _('Wallet transaction')
        verbose_name_plural = _('Wallet transactions')
        ordering = ['created_at', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['stripe_payment_intent_id', 'type'],
                name='unique_wallet_transaction_per_intent'
            ),
        ]
        indexes = [
            models.Index(fields=['user', 'created_at']),
        ]

    def __str__(self):
        return f"{self.type} {self.amount} ({self.user_id})"
