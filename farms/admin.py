"""
Django Admin Configuration for Farm Models
"""

from django.contrib import admin
from .models import FarmerRequest, FarmerRequestDecision, Listing, Product


class FarmerRequestDecisionInline(admin.TabularInline):
    model = FarmerRequestDecision
    extra = 0
    fields = (
        'status', 'role', 'decided_by', 'identity_synced', 'profile_synced',
        'status_updated', 'listing_provisioned', 'notified', 'attempts',
        'last_error', 'completed_at',
    )
    readonly_fields = fields
    can_delete = False


class ProductInline(admin.TabularInline):
    model = Product
    extra = 0
    fields = ('name', 'category', 'price', 'unit', 'stock_status', 'active', 'is_published')


@admin.register(FarmerRequest)
class FarmerRequestAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'farm_name', 'first_name', 'last_name', 'email',
        'department', 'status', 'created_at', 'decided_at'
    ]
    list_filter = ['status', 'department', 'created_at']
    search_fields = ['farm_name', 'email', 'siret', 'user_id', 'last_name']
    readonly_fields = ['user_id', 'created_at', 'updated_at', 'decided_at', 'decided_by']
    inlines = [FarmerRequestDecisionInline]

    fieldsets = (
        ('Applicant', {
            'fields': ('user_id', 'email', 'first_name', 'last_name', 'phone')
        }),
        ('Farm', {
            'fields': ('farm_name', 'siret', 'department', 'location', 'lat', 'lng',
                       'description', 'products', 'website')
        }),
        ('Decision', {
            'fields': ('status', 'decided_at', 'decided_by', 'admin_reason')
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_delete_permission(self, request, obj=None):
        """Requests are kept as the audit trail."""
        return False


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'email', 'active', 'orders_enabled', 'published_at', 'created_at']
    list_filter = ['active', 'orders_enabled']
    search_fields = ['name', 'email', 'clerk_user_id', 'address']
    readonly_fields = ['clerk_user_id', 'created_at', 'updated_at']
    inlines = [ProductInline]


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'listing', 'price', 'unit', 'stock_status', 'active', 'is_published']
    list_filter = ['stock_status', 'active', 'is_published', 'category']
    search_fields = ['name', 'listing__name']
    raw_id_fields = ['listing']
