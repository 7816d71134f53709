from django.contrib.auth.decorators import login_required
from django.core.paginator import Paginator
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.http import require_http_methods, require_POST

from .models import Notification


@login_required
@require_http_methods(["GET"])
def notifications_list(request):
    """The user's notifications, newest first; ``?status=unread|read`` filters"""
    notifications = Notification.objects.filter(target_user=request.user)

    status = request.GET.get('status', 'all')
    if status == 'unread':
        notifications = notifications.filter(is_read=False)
    elif status == 'read':
        notifications = notifications.filter(is_read=True)

    paginator = Paginator(notifications, 20)
    page_obj = paginator.get_page(request.GET.get('page'))

    unread_count = Notification.objects.filter(target_user=request.user, is_read=False).count()

    return JsonResponse({
        'notifications': [n.to_dict() for n in page_obj],
        'unread_count': unread_count,
        'page': page_obj.number,
        'num_pages': paginator.num_pages,
    })


@login_required
@require_POST
def mark_notification_read(request, notification_id):
    notification = get_object_or_404(Notification, id=notification_id, target_user=request.user)
    notification.mark_as_read()
    return JsonResponse({
        'success': True,
        'message': 'Notification marked as read'
    })


@login_required
@require_POST
def mark_all_read(request):
    updated = Notification.objects.filter(
        target_user=request.user,
        is_read=False
    ).update(
        is_read=True,
        read_at=timezone.now()
    )
    return JsonResponse({
        'success': True,
        'message': 'All notifications marked as read',
        'updated': updated,
    })
