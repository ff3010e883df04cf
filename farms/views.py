"""
Farm Onboarding & Listing Views

Farmer request submission, admin decisions, listing finalization and the
public listing directory.
"""
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated

from accounts.permissions import IsAdminRole
from .serializers import (
    FarmerRequestSerializer,
    FarmerRequestDecisionSerializer,
    FarmerRequestUpdateSerializer,
    FinalizeListingSerializer,
    ListingSerializer,
    ListingDetailSerializer,
    ProductSerializer,
    ProductWriteSerializer,
)
from .services import CatalogService, FarmerRequestWorkflowService


# =============================================================================
# ONBOARDING (Farmer)
# =============================================================================

class SubmitFarmerRequestView(APIView):
    """
    Submit a request to become a producer.

    POST /api/onboarding/submit-request/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        farmer_request = FarmerRequestWorkflowService().submit_request(request.user, request.data)
        return Response(
            {
                'success': True,
                'message': 'Your request has been submitted and will be reviewed shortly.',
                'requestId': farmer_request.id,
            },
            status=status.HTTP_201_CREATED
        )


class MyFarmerRequestView(APIView):
    """
    The caller's most recent farmer request.

    GET /api/onboarding/my-request/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        farmer_request = FarmerRequestWorkflowService().get_latest_request(request.user)
        return Response({
            'success': True,
            'request': FarmerRequestSerializer(farmer_request).data,
        })


class FarmerRequestDetailsView(APIView):
    """
    Owner edits after approval (description, products, website).

    PATCH /api/onboarding/requests/<id>/
    """
    permission_classes = [IsAuthenticated]

    def patch(self, request, request_id):
        serializer = FarmerRequestUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        farmer_request = FarmerRequestWorkflowService().update_request_details(
            request.user,
            request_id,
            serializer.validated_data,
        )
        return Response({
            'success': True,
            'message': 'Request details updated',
            'request': FarmerRequestSerializer(farmer_request).data,
        })


class FinalizeListingView(APIView):
    """
    Final onboarding step: complete and optionally publish the listing.

    POST /api/onboarding/create-listing/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = FinalizeListingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        listing, products_created = FarmerRequestWorkflowService().finalize_listing(
            request.user,
            data['requestId'],
            farm_profile=data.get('farmProfile'),
            products=data.get('products'),
            enable_orders=data['enableOrders'],
            publish_farm=data['publishFarm'],
        )
        return Response(
            {
                'success': True,
                'message': 'Listing published' if listing.active else 'Listing saved',
                'listingId': listing.id,
                'productsCreated': products_created,
            },
            status=status.HTTP_201_CREATED
        )


# =============================================================================
# ADMIN
# =============================================================================

class ValidateFarmerRequestView(APIView):
    """
    Approve or reject a farmer request (admin only).

    POST /api/validate-farmer-request/
    """
    permission_classes = [IsAdminRole]

    def post(self, request):
        serializer = FarmerRequestDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        service = FarmerRequestWorkflowService()
        decision, listing = service.decide(
            data['requestId'],
            data['status'],
            decided_by=request.user.user_id,
            role=data.get('role'),
            reason=data.get('reason', ''),
            user_id=data.get('userId') or None,
        )

        payload = {
            'success': True,
            'message': service.DECISION_MESSAGES[data['status']],
        }
        if listing is not None:
            payload['listingId'] = listing.id
        if decision is not None and not decision.is_complete:
            payload['pendingSteps'] = True
        return Response(payload, status=status.HTTP_200_OK)


class FarmerRequestListView(APIView):
    """
    Farmer requests for the admin queue.

    GET /api/get-farmer-requests/

    Query Parameters:
    - status: pending (default), approved, rejected, all
    - limit: 1..100
    - offset: >= 0
    - sortBy: created_at (default), updated_at, farm_name
    - sortOrder: asc, desc (default)
    """
    permission_classes = [IsAdminRole]

    def get(self, request):
        rows, pagination = CatalogService().list_farmer_requests(request.query_params)
        status_filter = request.query_params.get('status') or 'pending'

        payload = {
            'success': True,
            'requests': FarmerRequestSerializer(rows, many=True).data,
            'count': len(rows),
            'message': f'{len(rows)} {status_filter} request(s) found',
        }
        if pagination is not None:
            payload['pagination'] = pagination
        return Response(payload)


# =============================================================================
# LISTINGS & PRODUCTS
# =============================================================================

class ListingListView(APIView):
    """
    Public listing directory.

    GET /api/get-listings/

    Query Parameters:
    - limit: 1..100 (offset without limit returns a window of 50)
    - offset: >= 0
    - sortBy: created_at (default), id
    - sortOrder: asc, desc (default)
    - includeInactive: true, false (default)
    """
    permission_classes = [AllowAny]

    def get(self, request):
        rows, pagination = CatalogService().list_listings(request.query_params)
        payload = {
            'success': True,
            'listings': ListingSerializer(rows, many=True).data,
            'count': len(rows),
            'message': f'{len(rows)} listing(s) found',
        }
        if pagination is not None:
            payload['pagination'] = pagination
        return Response(payload)


class ListingDetailView(APIView):
    """
    GET /api/listings/<id>/
    """
    permission_classes = [AllowAny]

    def get(self, request, listing_id):
        listing, products = CatalogService().get_listing(listing_id, request.user)
        serializer = ListingDetailSerializer(listing, context={'products': products})
        return Response({'success': True, 'listing': serializer.data})


class ListingProductCreateView(APIView):
    """
    Add a product to the caller's listing.

    POST /api/listings/<id>/products/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, listing_id):
        serializer = ProductWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product = CatalogService().create_product(request.user, listing_id, serializer.validated_data)
        return Response(
            {'success': True, 'product': ProductSerializer(product).data},
            status=status.HTTP_201_CREATED
        )


class ProductUpdateView(APIView):
    """
    Update one of the caller's products.

    PATCH /api/products/<id>/
    """
    permission_classes = [IsAuthenticated]

    def patch(self, request, product_id):
        serializer = ProductWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        product = CatalogService().update_product(request.user, product_id, serializer.validated_data)
        return Response({'success': True, 'product': ProductSerializer(product).data})
