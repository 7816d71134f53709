import json
import re
import uuid
from decimal import Decimal, InvalidOperation


def get_client_ip(request):
    """Get client IP address from request"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0]
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip


def parse_request_data(request):
    """
    Return the request payload as a dict.
    JSON bodies are decoded, form posts fall back to request.POST.
    Raises ValueError on malformed JSON.
    """
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        try:
            data = json.loads(request.body.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f'Invalid JSON body: {e}')
        if not isinstance(data, dict):
            raise ValueError('JSON body must be an object')
        return data
    return request.POST.dict()


def only_digits(value):
    return re.sub(r'\D', '', str(value or ''))


def parse_decimal(value):
    """
    Parse a money amount typed by a person: accepts '12,50' as well as '12.50'.
    Returns None for blank input, raises ValueError for garbage.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    text = str(value).strip().replace(' ', '')
    if not text:
        return None
    if ',' in text:
        # Brazilian format: 1.234,56
        text = text.replace('.', '').replace(',', '.')
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValueError(f'Invalid amount: {value}')
    if not amount.is_finite():
        raise ValueError(f'Invalid amount: {value}')
    return amount


def parse_uuid(value):
    """
    Return the UUID in ``value``, or None when it is blank.
    Raises ValueError when it is not a UUID.
    """
    if value is None or value == '':
        return None
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        raise ValueError(f'Invalid id: {value}')


def parse_positive_int(value, default, maximum=None):
    """
    Parse a count from a query string (page sizes, limits).
    Blank input gives ``default``; the result is capped at ``maximum``.
    Raises ValueError unless the value is a whole number of at least 1.
    """
    if value is None or value == '':
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f'Expected a whole number, got {value!r}')
    if number < 1:
        raise ValueError(f'Expected a number of at least 1, got {number}')
    if maximum is not None:
        number = min(number, maximum)
    return number
