from django.urls import path
from .views import AdminUserListView, AdminUserRoleView, MeView, RegisterUserView

urlpatterns = [
    path('auth/register/', RegisterUserView.as_view(), name='auth-register'),
    path('auth/me/', MeView.as_view(), name='auth-me'),

    # Admin API
    path('admin/users/', AdminUserListView.as_view(), name='admin-users'),
    path('admin/users/<int:user_id>/role/', AdminUserRoleView.as_view(), name='admin-user-role'),
]
