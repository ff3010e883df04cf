"""
Django Admin Configuration for marketplace profiles
"""
from django.contrib import admin
from .models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    """Admin interface for identity-provider backed profiles."""

    list_display = ('user_id', 'email', 'first_name', 'last_name', 'role', 'listing', 'created_at')
    list_filter = ('role', 'created_at')
    search_fields = ('user_id', 'email', 'first_name', 'last_name')
    ordering = ('-created_at',)
    raw_id_fields = ('listing',)
    readonly_fields = ('user_id', 'created_at', 'updated_at')

    fieldsets = (
        ('Identity', {
            'fields': ('user_id', 'email')
        }),
        ('Personal Info', {
            'fields': ('first_name', 'last_name', 'phone')
        }),
        ('Marketplace', {
            'fields': ('role', 'listing')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )
