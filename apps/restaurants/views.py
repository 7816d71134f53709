import logging

from django.db import transaction
from django.forms.models import model_to_dict
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods

from apps.authentication.decorators import restaurant_admin_required
from apps.authentication.utils import parse_request_data
from apps.notifications.utils import broadcast_store_update

from .forms import RestaurantForm, BusinessHourForm, DeliveryZoneForm
from .location import quote_delivery, geocode_address, build_address, DELIVERY, PICKUP
from .models import Restaurant, BusinessHour, DeliveryZone
from .utils import default_business_hours, serialize_business_hour

logger = logging.getLogger(__name__)


def serialize_restaurant(restaurant, include_private=False):
    status = restaurant.get_business_status()
    data = {
        'id': str(restaurant.id),
        'name': restaurant.name,
        'description': restaurant.description,
        'logo_url': restaurant.get_logo_url(),
        'phone': restaurant.phone,
        'email': restaurant.email,
        'address': restaurant.get_full_address(),
        'street': restaurant.street,
        'number': restaurant.number,
        'neighborhood': restaurant.neighborhood,
        'city': restaurant.city,
        'state': restaurant.state,
        'zip_code': restaurant.zip_code,
        'latitude': restaurant.latitude,
        'longitude': restaurant.longitude,
        'delivery_enabled': restaurant.delivery_enabled,
        'is_active': restaurant.is_active,
        'is_open': restaurant.is_active and status.is_open,
        'today_hours': status.today_hours,
    }
    if include_private:
        data['notification_sound_url'] = restaurant.get_notification_sound_url()
        data['owner_id'] = str(restaurant.owner_id)
    return data


def serialize_delivery_zone(zone):
    return {
        'id': str(zone.id),
        'name': zone.name,
        'delivery_fee': str(zone.delivery_fee),
        'max_distance_km': str(zone.max_distance_km),
        'min_delivery_time_minutes': zone.min_delivery_time_minutes,
        'center_latitude': zone.center_latitude,
        'center_longitude': zone.center_longitude,
        'is_active': zone.is_active,
    }


# ----------------------------------------------------------------------
# Public storefront
# ----------------------------------------------------------------------

@require_http_methods(["GET"])
def restaurant_list(request):
    """Active restaurants, optionally filtered by city."""
    restaurants = Restaurant.objects.filter(is_active=True).prefetch_related('business_hours')
    city = request.GET.get('city', '').strip()
    if city:
        restaurants = restaurants.filter(city__iexact=city)

    return JsonResponse({
        'restaurants': [serialize_restaurant(r) for r in restaurants],
        'count': len(restaurants),
    })


@require_http_methods(["GET"])
def restaurant_detail(request, restaurant_id):
    """Everything the storefront needs before showing the menu."""
    from apps.payments.models import PaymentMethod, PaymentSettings

    restaurant = get_object_or_404(Restaurant, id=restaurant_id, is_active=True)
    payment_methods = PaymentMethod.objects.filter(restaurant=restaurant, is_active=True)
    payment_settings = PaymentSettings.objects.filter(restaurant=restaurant).first()

    data = serialize_restaurant(restaurant)
    data.update({
        'business_hours': [serialize_business_hour(h) for h in restaurant.business_hours.all()],
        'payment_methods': [m.to_dict() for m in payment_methods],
        'mercado_pago_public_key': payment_settings.public_key if payment_settings else None,
    })
    return JsonResponse(data)


@require_http_methods(["POST"])
def delivery_quote(request, restaurant_id):
    """Fee and delivery window for an address, used by checkout before placing the order."""
    restaurant = get_object_or_404(Restaurant, id=restaurant_id, is_active=True)
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    option = data.get('delivery_option', DELIVERY)
    if option not in (DELIVERY, PICKUP):
        return JsonResponse({'error': 'delivery_option must be "delivery" or "pickup"'}, status=400)

    coordinates = None
    if data.get('latitude') not in (None, '') and data.get('longitude') not in (None, ''):
        coordinates = (data['latitude'], data['longitude'])

    address = data.get('address') or build_address(**{
        key: data.get(key, '') for key in ('street', 'number', 'neighborhood', 'city', 'state', 'zip_code')
    })
    if option == DELIVERY and not address and coordinates is None:
        return JsonResponse({'error': 'An address is required for delivery'}, status=400)

    quote = quote_delivery(restaurant, option, address=address, coordinates=coordinates)
    if not quote['is_valid']:
        return JsonResponse({'success': False, 'error': quote['error'], 'distance_km': quote['distance_km']}, status=422)

    return JsonResponse({
        'success': True,
        'delivery_fee': str(quote['fee']),
        'min_delivery_time_minutes': quote['min_time'],
        'max_delivery_time_minutes': quote['max_time'],
        'distance_km': quote['distance_km'],
        'coordinates': list(quote['coordinates']) if quote['coordinates'] else None,
    })


# ----------------------------------------------------------------------
# Back-office: store settings
# ----------------------------------------------------------------------

@restaurant_admin_required
@require_http_methods(["GET", "POST"])
def my_store(request):
    """Read or update the admin's restaurant. Multipart posts may carry a logo and a notification sound."""
    restaurant = request.restaurant

    if request.method == "GET":
        return JsonResponse(serialize_restaurant(restaurant, include_private=True))

    try:
        incoming = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    file_fields = {'logo', 'notification_sound'}
    data = {
        key: value for key, value in model_to_dict(restaurant, fields=RestaurantForm.Meta.fields).items()
        if key not in file_fields and value is not None
    }
    data.update({key: value for key, value in incoming.items() if key not in file_fields})

    address_fields = ('street', 'number', 'neighborhood', 'city', 'state', 'zip_code', 'address')
    address_changed = any(
        key in incoming and str(incoming[key]) != str(getattr(restaurant, key)) for key in address_fields
    )
    coordinates_given = 'latitude' in incoming or 'longitude' in incoming
    if address_changed and not coordinates_given:
        # Stale coordinates must not survive an address change
        data.pop('latitude', None)
        data.pop('longitude', None)

    form = RestaurantForm(data, request.FILES, instance=restaurant)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid store data', 'errors': form.errors}, status=400)

    restaurant = form.save(commit=False)
    if address_changed and not coordinates_given:
        coords = geocode_address(build_address(
            street=restaurant.street, number=restaurant.number, neighborhood=restaurant.neighborhood,
            city=restaurant.city, state=restaurant.state, zip_code=restaurant.zip_code,
        ) or restaurant.address)
        if coords:
            restaurant.latitude, restaurant.longitude = coords
        else:
            logger.warning(f'Store {restaurant.id} saved without coordinates, address could not be geocoded')
    restaurant.save()

    return JsonResponse({
        'success': True,
        'message': 'Store settings saved',
        'restaurant': serialize_restaurant(restaurant, include_private=True),
    })


@restaurant_admin_required
@require_http_methods(["GET", "POST"])
def business_hours(request):
    """
    GET returns the weekly schedule (defaults when none is saved yet).
    POST replaces the whole schedule with ``{"hours": [...]}``.
    """
    restaurant = request.restaurant

    if request.method == "GET":
        hours = list(restaurant.business_hours.all())
        if hours:
            return JsonResponse({'hours': [serialize_business_hour(h) for h in hours], 'is_default': False})
        defaults = [BusinessHour(restaurant=restaurant, **row) for row in default_business_hours()]
        return JsonResponse({'hours': [serialize_business_hour(h) for h in defaults], 'is_default': True})

    try:
        rows = parse_request_data(request).get('hours')
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)
    if not isinstance(rows, list):
        return JsonResponse({'error': '"hours" must be a list'}, status=400)

    forms_ = [BusinessHourForm(row if isinstance(row, dict) else {}) for row in rows]
    errors = {i: f.errors for i, f in enumerate(forms_) if not f.is_valid()}
    if errors:
        return JsonResponse({'error': 'Invalid business hours', 'errors': errors}, status=400)

    days = [f.cleaned_data['day_of_week'] for f in forms_]
    if len(days) != len(set(days)):
        return JsonResponse({'error': 'Each weekday may appear only once'}, status=400)

    with transaction.atomic():
        restaurant.business_hours.all().delete()
        BusinessHour.objects.bulk_create([
            BusinessHour(
                restaurant=restaurant,
                day_of_week=f.cleaned_data['day_of_week'],
                is_open=f.cleaned_data['is_open'],
                open_time=f.cleaned_data['open_time'],
                close_time=f.cleaned_data['close_time'],
            )
            for f in forms_
        ])
        transaction.on_commit(lambda: broadcast_store_update(restaurant, 'business_hours'))

    hours = restaurant.business_hours.all()
    return JsonResponse({
        'success': True,
        'message': 'Business hours saved',
        'hours': [serialize_business_hour(h) for h in hours],
    })


@restaurant_admin_required
@require_http_methods(["GET", "POST"])
def delivery_zones(request):
    """GET lists zones by distance; POST replaces them all with ``{"zones": [...]}``."""
    restaurant = request.restaurant

    if request.method == "GET":
        zones = restaurant.delivery_zones.all()
        return JsonResponse({
            'zones': [serialize_delivery_zone(z) for z in zones],
            'delivery_enabled': restaurant.delivery_enabled,
            'restaurant_coordinates': [restaurant.latitude, restaurant.longitude] if restaurant.has_coordinates() else None,
        })

    try:
        rows = parse_request_data(request).get('zones')
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)
    if not isinstance(rows, list):
        return JsonResponse({'error': '"zones" must be a list'}, status=400)

    forms_ = []
    for row in rows:
        row = dict(row) if isinstance(row, dict) else {}
        row.setdefault('is_active', True)
        row.setdefault('min_delivery_time_minutes', 0)
        row.setdefault('center_latitude', restaurant.latitude)
        row.setdefault('center_longitude', restaurant.longitude)
        forms_.append(DeliveryZoneForm(row))

    errors = {i: f.errors for i, f in enumerate(forms_) if not f.is_valid()}
    if errors:
        return JsonResponse({'error': 'Invalid delivery zones', 'errors': errors}, status=400)

    with transaction.atomic():
        restaurant.delivery_zones.all().delete()
        for f in forms_:
            zone = f.save(commit=False)
            zone.restaurant = restaurant
            zone.save()
        transaction.on_commit(lambda: broadcast_store_update(restaurant, 'delivery_zones'))

    zones = restaurant.delivery_zones.all()
    return JsonResponse({
        'success': True,
        'message': 'Delivery zones saved',
        'zones': [serialize_delivery_zone(z) for z in zones],
    })
