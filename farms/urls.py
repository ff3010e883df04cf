"""
Farm onboarding, admin decision and listing URLs
"""
from django.urls import path
from .views import (
    SubmitFarmerRequestView,
    MyFarmerRequestView,
    FarmerRequestDetailsView,
    FinalizeListingView,
    ValidateFarmerRequestView,
    FarmerRequestListView,
    ListingListView,
    ListingDetailView,
    ListingProductCreateView,
    ProductUpdateView,
)

app_name = 'farms'

urlpatterns = [
    # Onboarding (authenticated applicant)
    path('onboarding/submit-request/', SubmitFarmerRequestView.as_view(), name='submit-request'),
    path('onboarding/my-request/', MyFarmerRequestView.as_view(), name='my-request'),
    path('onboarding/requests/<int:request_id>/', FarmerRequestDetailsView.as_view(), name='request-details'),
    path('onboarding/create-listing/', FinalizeListingView.as_view(), name='create-listing'),

    # Admin
    path('validate-farmer-request/', ValidateFarmerRequestView.as_view(), name='validate-farmer-request'),
    path('get-farmer-requests/', FarmerRequestListView.as_view(), name='get-farmer-requests'),

    # Listings & products
    path('get-listings/', ListingListView.as_view(), name='get-listings'),
    path('listings/<int:listing_id>/', ListingDetailView.as_view(), name='listing-detail'),
    path('listings/<int:listing_id>/products/', ListingProductCreateView.as_view(), name='listing-products'),
    path('products/<int:product_id>/', ProductUpdateView.as_view(), name='product-update'),
]
