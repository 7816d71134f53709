import csv
import logging
from datetime import datetime, timedelta
from decimal import Decimal

from django.http import HttpResponse, JsonResponse
from django.db.models import Sum, Count
from django.utils import timezone
from django.views.decorators.http import require_http_methods

from apps.authentication.decorators import restaurant_admin_required
from apps.menu.models import Product
from apps.orders.models import Order

from .utils import create_audit_log

logger = logging.getLogger(__name__)


def _local_day_start(day):
    return timezone.make_aware(datetime.combine(day, datetime.min.time()))


def get_dashboard_stats(restaurant, today=None):
    """Headline numbers for the back-office dashboard."""
    today = today or timezone.localdate()
    sales = Order.objects.filter(restaurant=restaurant, status__in=Order.SALE_STATUSES)

    day_start = _local_day_start(today)
    month_start = _local_day_start(today.replace(day=1))

    today_orders = sales.filter(created_at__gte=day_start, created_at__lt=day_start + timedelta(days=1))
    month_sales = sales.filter(created_at__gte=month_start).aggregate(total=Sum('total_amount'))['total']

    return {
        'products_count': Product.objects.filter(restaurant=restaurant).count(),
        'customers_count': (
            Order.objects.filter(restaurant=restaurant).values('customer_id').distinct().count()
        ),
        'orders_today': today_orders.count(),
        'sales_today': str(today_orders.aggregate(total=Sum('total_amount'))['total'] or Decimal('0.00')),
        'sales_month': str(month_sales or Decimal('0.00')),
        'pending_orders': Order.objects.filter(restaurant=restaurant, status=Order.STATUS_PENDING).count(),
    }


@restaurant_admin_required
@require_http_methods(["GET"])
def dashboard_stats(request):
    stats = get_dashboard_stats(request.restaurant)
    by_status = (
        Order.objects.filter(restaurant=request.restaurant)
        .values('status')
        .annotate(count=Count('id'))
    )
    stats['orders_by_status'] = {row['status']: row['count'] for row in by_status}
    return JsonResponse(stats)


def _parse_date(value, default):
    if not value:
        return default
    return datetime.strptime(value, '%Y-%m-%d').date()


@restaurant_admin_required
@require_http_methods(["GET"])
def export_sales_csv(request):
    """``?start=YYYY-MM-DD&end=YYYY-MM-DD``, both inclusive; defaults to the current month."""
    today = timezone.localdate()
    try:
        start_date = _parse_date(request.GET.get('start'), today.replace(day=1))
        end_date = _parse_date(request.GET.get('end'), today)
    except ValueError:
        return JsonResponse({'error': 'Dates must use the YYYY-MM-DD format'}, status=400)
    if start_date > end_date:
        return JsonResponse({'error': 'start must not be after end'}, status=400)

    orders = (
        Order.objects.filter(
            restaurant=request.restaurant,
            status__in=Order.SALE_STATUSES,
            created_at__gte=_local_day_start(start_date),
            created_at__lt=_local_day_start(end_date + timedelta(days=1)),
        )
        .order_by('created_at')
    )

    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="sales_report_{start_date}_to_{end_date}.csv"'
    writer = csv.writer(response)
    writer.writerow(['Sales Report', request.restaurant.name])
    writer.writerow([f'Period: {start_date} to {end_date}'])
    writer.writerow([])
    writer.writerow([
        'Order Number', 'Customer', 'Phone', 'Delivery Option', 'Payment Method',
        'Subtotal', 'Delivery Fee', 'Total Amount', 'Status', 'Created At',
    ])

    total = Decimal('0.00')
    for order in orders:
        total += order.total_amount
        writer.writerow([
            order.order_number,
            order.customer_name,
            order.customer_phone,
            order.get_delivery_option_display(),
            order.payment_method_name,
            order.subtotal,
            order.delivery_fee,
            order.total_amount,
            order.get_status_display(),
            timezone.localtime(order.created_at).strftime('%Y-%m-%d %H:%M'),
        ])
    writer.writerow([])
    writer.writerow(['Total', '', '', '', '', '', '', total])

    create_audit_log(
        request, 'Export', f'Sales CSV {start_date} to {end_date}', restaurant=request.restaurant
    )
    logger.info(f'Sales CSV exported for restaurant {request.restaurant.id} ({start_date} to {end_date})')
    return response
