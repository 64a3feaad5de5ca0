import logging

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status, views
from rest_framework.response import Response

from .models import User
from .permissions import IsAdminRole
from .serializers import ProfileUpdateSerializer, RegisterSerializer, UserSerializer

logger = logging.getLogger(__name__)

def parse_role(value):
    """Accepts 'student' as well as 'STUDENT'; returns None for unknown roles."""
    if not value:
        return None
    role = value.strip().upper()
    return role if role in User.Role.values else None

class RegisterUserView(views.APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Student account created: %s", user.username)
        return Response({"success": True, "user": UserSerializer(user).data}, status=status.HTTP_201_CREATED)

class MeView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        return Response({"success": True, "user": UserSerializer(request.user).data})

    def put(self, request):
        serializer = ProfileUpdateSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response({"success": True, "user": UserSerializer(user).data})

# --- Admin API ---

class AdminUserListView(views.APIView):
    permission_classes = [IsAdminRole]

    def get(self, request):
        users = User.objects.select_related('student_profile').order_by('-date_joined')

        role = parse_role(request.query_params.get('role'))
        if role:
            users = users.filter(role=role)
        search = request.query_params.get('search')
        if search:
            users = users.filter(
                Q(username__icontains=search) | Q(first_name__icontains=search) |
                Q(last_name__icontains=search) | Q(email__icontains=search) |
                Q(student_profile__student_id__icontains=search)
            )

        data = UserSerializer(users, many=True).data
        return Response({"success": True, "count": len(data), "users": data})

class AdminUserRoleView(views.APIView):
    permission_classes = [IsAdminRole]

    def put(self, request, user_id):
        role = parse_role(request.data.get('role'))
        if role is None:
            return Response({"success": False, "message": "Invalid role"}, status=status.HTTP_400_BAD_REQUEST)

        user = get_object_or_404(User, id=user_id)
        user.role = role
        user.save(update_fields=['role'])
        logger.info("Role of %s changed to %s by %s", user.username, user.role, request.user.username)
        return Response({"success": True, "user": UserSerializer(user).data})
