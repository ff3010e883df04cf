from django.utils import timezone
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .permissions import IsAdminRole
from .serializers import ProfileSerializer, UserDirectorySerializer, UserRoleUpdateSerializer
from .services import UserDirectoryService


class CurrentProfileView(generics.RetrieveUpdateAPIView):
    """
    The caller's profile and marketplace role.

    GET   /api/auth/me/
    PATCH /api/auth/me/   (name and phone only)
    """
    serializer_class = ProfileSerializer
    permission_classes = [permissions.IsAuthenticated]
    http_method_names = ['get', 'patch', 'options']

    def get_object(self):
        return self.request.user


# =============================================================================
# ADMIN USER MANAGEMENT
# =============================================================================

class UserDirectoryView(APIView):
    """
    GET /api/auth/users/

    Query Parameters:
    - role: all (default), user, farmer, admin
    - search: email, name or user id (2 characters minimum)
    - limit: 1..100
    - offset: >= 0
    - sortBy: created_at (default), updated_at, email, role
    - sortOrder: asc, desc (default)
    """
    permission_classes = [IsAdminRole]

    def get(self, request):
        rows, pagination = UserDirectoryService().list_users(request.query_params)
        role = request.query_params.get('role') or 'all'

        payload = {
            'success': True,
            'users': UserDirectorySerializer(rows, many=True).data,
            'count': len(rows),
            'message': f'{len(rows)} user(s) found' + ('' if role == 'all' else f' with role {role}'),
        }
        if pagination is not None:
            payload['pagination'] = pagination
        return Response(payload)


class UserRoleUpdateView(APIView):
    """
    POST /api/auth/users/role/

    Request Body:
    {
        "userId": "user_2NNEqL2nrIRdJ194ndJqAHwEfxC",
        "role": "farmer",
        "reason": "Verified producer"  // Optional, 500 characters max
    }
    """
    permission_classes = [IsAdminRole]

    def post(self, request):
        serializer = UserRoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        profile, previous_role = UserDirectoryService().change_role(
            data['userId'],
            data['role'],
            updated_by=request.user.user_id,
            reason=data.get('reason', ''),
        )

        if previous_role == data['role']:
            message = f"User already has role {data['role']}"
        else:
            message = f"Role updated from {previous_role} to {data['role']}"

        return Response({
            'success': True,
            'message': message,
            'updatedUser': {
                'id': profile.user_id,
                'role': profile.role,
                'updatedAt': (profile.updated_at or timezone.now()).isoformat(),
            },
        }, status=status.HTTP_200_OK)
