from rest_framework import permissions


class IsGraderOrOwner(permissions.BasePermission):
    message = "Only graders, contest owners and admins can perform this action."

    def has_permission(self, request, view):
        return is_privileged(request.user)


def is_privileged(user):
    if user.is_staff or user.is_superuser:
        return True
    return hasattr(user, 'profile') and user.profile.is_privileged
