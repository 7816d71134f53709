from apps.authentication.utils import get_client_ip

from .models import AuditLog


def create_audit_log(request, activity, description="", restaurant=None, user=None):
    user = user or request.user
    return AuditLog.objects.create(
        user=user if user.is_authenticated else None,
        restaurant=restaurant,
        activity=activity,
        description=description,
        ip_address=get_client_ip(request),
    )
