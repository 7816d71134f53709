import logging

from django.core.paginator import Paginator
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods, require_POST

from apps.authentication.decorators import restaurant_admin_required
from apps.authentication.utils import parse_request_data, parse_decimal

from .models import CashRegister, CashRegisterError

logger = logging.getLogger(__name__)


def _read_balance(data, field):
    """Non-negative amount from the payload; comma decimals are accepted"""
    try:
        amount = parse_decimal(data.get(field))
    except ValueError:
        raise ValueError(f'{field} must be a valid amount')
    if amount is None:
        raise ValueError(f'{field} is required')
    if amount < 0:
        raise ValueError(f'{field} cannot be negative')
    return amount


@restaurant_admin_required
@require_http_methods(["GET"])
def current_register(request):
    register = CashRegister.current_for(request.restaurant)
    return JsonResponse({
        'register': register.to_dict(include_sales=True) if register else None,
    })


@restaurant_admin_required
@require_POST
def open_register(request):
    try:
        data = parse_request_data(request)
        opening_balance = _read_balance(data, 'opening_balance')
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    try:
        register = CashRegister.open(request.restaurant, request.user, opening_balance, data.get('notes', ''))
    except CashRegisterError as e:
        return JsonResponse({'error': str(e)}, status=409)

    logger.info(f'Cash register opened for restaurant {request.restaurant.id} with {opening_balance}')
    return JsonResponse({
        'success': True,
        'message': 'Cash register opened',
        'register': register.to_dict(include_sales=True),
    }, status=201)


@restaurant_admin_required
@require_POST
def close_register(request):
    try:
        data = parse_request_data(request)
        closing_balance = _read_balance(data, 'closing_balance')
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    register = CashRegister.current_for(request.restaurant)
    if register is None:
        return JsonResponse({'error': 'No cash register is open'}, status=409)

    try:
        register.close(request.user, closing_balance, data.get('notes', ''))
    except CashRegisterError as e:
        return JsonResponse({'error': str(e)}, status=409)

    summary = register.to_dict(include_sales=True)
    expected = register.get_expected_balance()
    summary['difference'] = str(closing_balance - expected)
    logger.info(
        f'Cash register closed for restaurant {request.restaurant.id}: '
        f'expected {expected}, counted {closing_balance}'
    )
    return JsonResponse({'success': True, 'message': 'Cash register closed', 'register': summary})


@restaurant_admin_required
@require_http_methods(["GET"])
def register_history(request):
    registers = CashRegister.objects.filter(restaurant=request.restaurant).select_related('opened_by', 'closed_by')
    paginator = Paginator(registers, 20)
    page_obj = paginator.get_page(request.GET.get('page'))
    return JsonResponse({
        'registers': [r.to_dict(include_sales=True) for r in page_obj],
        'page': page_obj.number,
        'num_pages': paginator.num_pages,
    })
