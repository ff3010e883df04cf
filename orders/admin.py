"""
Django Admin Configuration for Orders
"""
from django.contrib import admin
from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Orders are historical records; items and totals are read-only."""

    list_display = [
        'id', 'farm', 'user_id', 'total_price', 'delivery_mode',
        'delivery_day', 'status', 'payment_status', 'created_at'
    ]
    list_filter = ['status', 'payment_status', 'delivery_mode', 'created_at']
    search_fields = ['user_id', 'farm__name']
    raw_id_fields = ['farm']
    readonly_fields = ['user_id', 'farm', 'items', 'total_price', 'created_at', 'updated_at']

    fieldsets = (
        ('Order', {
            'fields': ('user_id', 'farm', 'items', 'total_price')
        }),
        ('Delivery', {
            'fields': ('delivery_mode', 'delivery_day', 'delivery_address', 'customer_notes')
        }),
        ('Status', {
            'fields': ('status', 'payment_status', 'farmer_notes', 'cancelled_reason', 'cancelled_by')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
