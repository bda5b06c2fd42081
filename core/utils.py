from rest_framework import permissions


class IsClient(permissions.BasePermission):
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return hasattr(request.user, 'client')


class IsWorker(permissions.BasePermission):
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return hasattr(request.user, 'worker')


class IsAdmin(permissions.BasePermission):
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.is_superuser


def success(message=None, **data):
    """Build the `{success, message?, ...data}` response envelope."""
    body = {'success': True}
    if message:
        body['message'] = message
    body.update(data)
    return body
