"""
URL configuration for the Farm To Fork backend.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/auth/', include('accounts.urls')),  # Caller identity & role
    path('api/orders/', include('orders.urls')),  # Consumer orders
    path('api/', include('farms.urls')),  # Onboarding, admin decisions, listings
]
