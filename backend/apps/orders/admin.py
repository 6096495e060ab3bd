# apps/orders/admin.py

from django.contrib import admin
from django.utils.html import format_html
from django.urls import reverse
from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        'id',
        'user_link',
        'payment_status_display',
        'order_status',
        'verified',
        'currency',
        'created_at',
        'paid_at'
    )
    list_filter = (
        'payment_status',
        'order_status',
        'verified',
        'created_at',
        'paid_at'
    )
    search_fields = (
        'id',
        'user__id',
        'user__email',
        'stripe_payment_intent_id'
    )
    # Payment fields are written by the webhook reconciliation only
    readonly_fields = (
        'payment_status',
        'verified',
        'stripe_payment_intent_id',
        'stripe_charge_id',
        'payment_error',
        'created_at',
        'updated_at',
        'paid_at'
    )

    fieldsets = (
        ('Order Information', {
            'fields': (
                'user',
                'order_status',
                'currency'
            )
        }),
        ('Payment', {
            'fields': (
                'payment_status',
                'verified',
                'stripe_payment_intent_id',
                'stripe_charge_id',
                'payment_error'
            )
        }),
        ('Timestamps', {
            'fields': (
                'created_at',
                'updated_at',
                'paid_at'
            )
        })
    )

    def user_link(self, obj):
        if not obj.user_id:
            return '-'
        url = reverse('admin:core_user_change', args=[obj.user_id])
        return format_html('<a href="{}">{}</a>', url, obj.user)
    user_link.short_description = 'User'

    def payment_status_display(self, obj):
        colors = {
            'unpaid': 'orange',
            'paid': 'green',
            'failed': 'red',
        }
        color = colors.get(obj.payment_status, 'black')
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 8px; border-radius: 3px;">{}</span>',
            color,
            obj.get_payment_status_display()
        )
    payment_status_display.short_description = 'Payment'

    actions = ['mark_as_completed', 'mark_as_cancelled']

    def mark_as_completed(self, request, queryset):
        updated = queryset.filter(order_status='confirmed').update(
            order_status='completed'
        )
        self.message_user(request, f'{updated} order(s) marked as completed.')
    mark_as_completed.short_description = 'Mark as completed'

    def mark_as_cancelled(self, request, queryset):
        updated = queryset.exclude(payment_status='paid').update(
            order_status='cancelled'
        )
        self.message_user(request, f'{updated} order(s) marked as cancelled.')
    mark_as_cancelled.short_description = 'Mark unpaid orders as cancelled'
