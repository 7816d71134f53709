from functools import wraps

from django.http import JsonResponse

from .utils import parse_uuid


def restaurant_admin_required(view_func):
    """
    Decorator for back-office endpoints.
    The user must be logged in and allowed to manage a restaurant; the
    restaurant is attached to the request as ``request.restaurant``.
    System admins may act on any restaurant by passing ``?restaurant=<id>``.
    """
    @wraps(view_func)
    def _wrapped_view(request, *args, **kwargs):
        user = request.user
        if not user.is_authenticated:
            return JsonResponse({"error": "Authentication required"}, status=401)

        if not user.can_manage_restaurants():
            return JsonResponse({"error": "Unauthorized"}, status=403)

        restaurant = None
        restaurant_id = request.GET.get("restaurant")
        if restaurant_id and user.is_system_admin():
            from apps.restaurants.models import Restaurant
            try:
                restaurant_id = parse_uuid(restaurant_id)
            except ValueError as e:
                return JsonResponse({"error": str(e)}, status=400)
            restaurant = Restaurant.objects.filter(id=restaurant_id).first()
        if restaurant is None:
            restaurant = user.get_restaurant()

        if restaurant is None:
            return JsonResponse({"error": "No restaurant is linked to this account"}, status=404)

        request.restaurant = restaurant
        return view_func(request, *args, **kwargs)

    return _wrapped_view
