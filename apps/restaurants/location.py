"""
Distance, delivery fee and geocoding helpers.

Distances are great-circle (haversine) kilometres between the restaurant and
the customer. Zones are rings around the restaurant: the smallest ring that
contains the customer sets the fee and the delivery window.
"""

import logging
import math
from decimal import Decimal, ROUND_HALF_UP

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371

DELIVERY = "delivery"
PICKUP = "pickup"


def haversine_distance(lat1, lon1, lat2, lon2):
    """Great-circle distance in kilometres between two (lat, lon) points."""
    lat1, lon1, lat2, lon2 = (float(v) for v in (lat1, lon1, lat2, lon2))
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def calculate_delivery_fee(customer_coords, restaurant_coords, zones):
    """
    Pick the delivery zone for a customer.

    ``customer_coords`` and ``restaurant_coords`` are (lat, lon) pairs and
    ``zones`` any iterable of DeliveryZone-like objects. Returns a dict with
    fee / min_time / max_time / distance_km / zone, or None when the customer
    is outside every zone.
    """
    distance = haversine_distance(
        customer_coords[0], customer_coords[1], restaurant_coords[0], restaurant_coords[1]
    )
    spread = settings.STOREFRONT_SETTINGS["ZONE_TIME_SPREAD"]

    for zone in sorted(zones, key=lambda z: Decimal(str(z.max_distance_km))):
        if distance <= float(zone.max_distance_km):
            fee = Decimal(str(zone.delivery_fee)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
            min_time = zone.min_delivery_time_minutes or 0
            return {
                "fee": fee,
                "min_time": min_time,
                "max_time": min_time + spread,
                "distance_km": round(distance, 2),
                "zone": zone,
            }
    return None


def _finite_coordinates(lat, lon):
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return lat, lon


def _geocode_with_google(address):
    config = settings.GEOCODING_CONFIG
    if not config["GOOGLE_MAPS_API_KEY"]:
        return None

    try:
        response = requests.get(
            config["GOOGLE_API_URL"],
            params={
                "address": address,
                "key": config["GOOGLE_MAPS_API_KEY"],
                "components": f"country:{config['COUNTRY']}",
            },
            timeout=config["TIMEOUT"],
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Google geocoding failed for '{address}': {e}")
        return None

    if data.get("status") != "OK" or not data.get("results"):
        logger.info(f"Google geocoding returned {data.get('status')} for '{address}'")
        return None

    location = data["results"][0].get("geometry", {}).get("location", {})
    return _finite_coordinates(location.get("lat"), location.get("lng"))


def _geocode_with_nominatim(address):
    config = settings.GEOCODING_CONFIG
    try:
        response = requests.get(
            config["NOMINATIM_URL"],
            params={
                "q": address,
                "format": "json",
                "limit": 1,
                "countrycodes": config["COUNTRY"].lower(),
            },
            headers={"User-Agent": config["USER_AGENT"]},
            timeout=config["TIMEOUT"],
        )
        response.raise_for_status()
        results = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Nominatim geocoding failed for '{address}': {e}")
        return None

    if not results:
        return None
    return _finite_coordinates(results[0].get("lat"), results[0].get("lon"))


def geocode_address(address):
    """Return (lat, lon) for a free-text address, or None if no provider finds it."""
    address = " ".join(str(address or "").split())
    if not address:
        return None

    coords = _geocode_with_google(address)
    if coords is None:
        coords = _geocode_with_nominatim(address)
    if coords is None:
        logger.info(f"Could not geocode '{address}'")
    return coords


def build_address(street="", number="", neighborhood="", city="", state="", zip_code="", **extra):
    street_line = ", ".join(part for part in [street, number] if part)
    parts = [street_line, neighborhood, city, state, zip_code]
    return ", ".join(part.strip() for part in parts if part and part.strip())


def quote_delivery(restaurant, delivery_option, address="", coordinates=None):
    """
    Delivery fee and time window for an order.

    Returns a dict with is_valid, fee, min_time, max_time, coordinates and,
    when invalid, an error message.
    """
    config = settings.STOREFRONT_SETTINGS

    if delivery_option == PICKUP:
        min_time, max_time = config["PICKUP_TIME"]
        return {
            "is_valid": True,
            "fee": Decimal("0.00"),
            "min_time": min_time,
            "max_time": max_time,
            "coordinates": None,
            "distance_km": None,
        }

    if coordinates is not None:
        coordinates = _finite_coordinates(*coordinates)

    zones = list(restaurant.delivery_zones.filter(is_active=True))
    default_min, default_max = config["DEFAULT_DELIVERY_TIME"]

    if not restaurant.delivery_enabled or not zones or not restaurant.has_coordinates():
        if coordinates is None and address:
            coordinates = geocode_address(address)
        return {
            "is_valid": True,
            "fee": Decimal("0.00"),
            "min_time": default_min,
            "max_time": default_max,
            "coordinates": coordinates,
            "distance_km": None,
        }

    if coordinates is None:
        coordinates = geocode_address(address)
    if coordinates is None:
        return {
            "is_valid": False,
            "error": "We could not find this address. Please check it and try again.",
            "fee": None,
            "min_time": None,
            "max_time": None,
            "coordinates": None,
            "distance_km": None,
        }

    result = calculate_delivery_fee(coordinates, (restaurant.latitude, restaurant.longitude), zones)
    if result is None:
        return {
            "is_valid": False,
            "error": "Sorry, this address is outside our delivery area.",
            "fee": None,
            "min_time": None,
            "max_time": None,
            "coordinates": coordinates,
            "distance_km": round(
                haversine_distance(coordinates[0], coordinates[1], restaurant.latitude, restaurant.longitude), 2
            ),
        }

    return {
        "is_valid": True,
        "fee": result["fee"],
        "min_time": result["min_time"],
        "max_time": result["max_time"],
        "coordinates": coordinates,
        "distance_km": result["distance_km"],
        "zone": result["zone"],
    }
