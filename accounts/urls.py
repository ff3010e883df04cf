from django.urls import path

from .views import CurrentProfileView, UserDirectoryView, UserRoleUpdateView

app_name = 'accounts'

urlpatterns = [
    path('me/', CurrentProfileView.as_view(), name='current-profile'),

    # Admin
    path('users/', UserDirectoryView.as_view(), name='user-directory'),
    path('users/role/', UserRoleUpdateView.as_view(), name='user-role-update'),
]
