from rest_framework import permissions

from .models import User


def has_role(user, *roles):
    return bool(user and user.is_authenticated and user.role in roles)


class IsStudent(permissions.BasePermission):
    message = "Only students can perform this action."

    def has_permission(self, request, view):
        return has_role(request.user, User.Role.STUDENT)


class IsFacultyOrAdmin(permissions.BasePermission):
    message = "Only faculty or admins can perform this action."

    def has_permission(self, request, view):
        return has_role(request.user, User.Role.FACULTY, User.Role.ADMIN)


class IsAdminRole(permissions.BasePermission):
    message = "Only admins can perform this action."

    def has_permission(self, request, view):
        return has_role(request.user, User.Role.ADMIN)
