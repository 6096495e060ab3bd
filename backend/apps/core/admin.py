# apps/core/admin.py

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _
from .models import User, SavedCard, WalletTransaction


class SavedCardInline(admin.TabularInline):
    model = SavedCard
    extra = 0
    readonly_fields = ('payment_method_id', 'brand', 'last4',
                       'exp_month', 'exp_year', 'created_at')
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class WalletTransactionInline(admin.TabularInline):
    model = WalletTransaction
    extra = 0
    fields = ('type', 'amount', 'previous_balance', 'new_balance',
              'stripe_payment_intent_id', 'order_id', 'created_at')
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(User)
class CustomUserAdmin(BaseUserAdmin):
    """UserAdmin keyed on the external identity instead of username."""

    list_display = ('id', 'email', 'wallet_balance',
                    'stripe_customer_id', 'is_staff')
    list_filter = ('is_staff', 'is_superuser', 'is_active')

    fieldsets = (
        (None, {'fields': ('id', 'email', 'password')}),
        (_('Payments'), {
            'fields': ('stripe_customer_id', 'wallet_balance',
                       'default_payment_method', 'order_history'),
        }),
        (_('Permissions'), {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
        }),
        (_('Important dates'), {'fields': ('last_login', 'date_joined', 'updated_at')}),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'password1', 'password2'),
        }),
    )

    # Balances only move through the wallet ledger
    readonly_fields = ('id', 'wallet_balance', 'order_history', 'updated_at')
    search_fields = ('id', 'email', 'stripe_customer_id')
    ordering = ('id',)
    filter_horizontal = ('groups', 'user_permissions',)
    inlines = [SavedCardInline, WalletTransactionInline]


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    list_display = ('user', 'type', 'amount', 'previous_balance',
                    'new_balance', 'payment_method', 'created_at')
    list_filter = ('type', 'payment_method', 'created_at')
    search_fields = ('user__id', 'user__email',
                     'stripe_payment_intent_id', 'order_id')
    readonly_fields = [f.name for f in WalletTransaction._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
