import logging

from django.core.paginator import Paginator
from django.db.models import Count, Prefetch
from django.forms.models import model_to_dict
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_http_methods, require_POST

from apps.authentication.decorators import restaurant_admin_required
from apps.authentication.utils import parse_positive_int, parse_request_data, parse_uuid
from apps.restaurants.models import Restaurant

from .forms import CategoryForm, ProductForm
from .models import Category, Product

logger = logging.getLogger(__name__)


def serialize_category(category, products=None):
    data = {
        'id': str(category.id),
        'name': category.name,
        'description': category.description,
        'display_order': category.display_order,
        'is_active': category.is_active,
    }
    if products is not None:
        data['products'] = [p.to_dict() for p in products]
    return data


def merge_with_instance(instance, fields, incoming, skip=()):
    """Fill the fields a partial update leaves out with the instance's current values."""
    data = {
        key: value for key, value in model_to_dict(instance, fields=fields).items()
        if key not in skip and value is not None
    }
    data.update({key: value for key, value in incoming.items() if key not in skip})
    return data


# ----------------------------------------------------------------------
# Storefront menu
# ----------------------------------------------------------------------

@require_http_methods(["GET"])
def public_menu(request, restaurant_id):
    """Active categories in display order with their available products."""
    restaurant = get_object_or_404(Restaurant, id=restaurant_id, is_active=True)
    available = Product.objects.filter(is_available=True).order_by('name')

    categories = (
        Category.objects.filter(restaurant=restaurant, is_active=True)
        .prefetch_related(Prefetch('products', queryset=available, to_attr='available_products'))
    )
    menu = [
        serialize_category(c, c.available_products)
        for c in categories if c.available_products
    ]

    uncategorized = available.filter(restaurant=restaurant, category__isnull=True)
    status = restaurant.get_business_status()

    return JsonResponse({
        'restaurant': {'id': str(restaurant.id), 'name': restaurant.name},
        'is_open': status.is_open,
        'today_hours': status.today_hours,
        'categories': menu,
        'uncategorized': [p.to_dict() for p in uncategorized],
    })


@require_http_methods(["GET"])
def product_detail(request, product_id):
    product = get_object_or_404(
        Product.objects.select_related('category'), id=product_id, restaurant__is_active=True
    )
    return JsonResponse(product.to_dict())


# ----------------------------------------------------------------------
# Back-office: categories
# ----------------------------------------------------------------------

@restaurant_admin_required
@require_http_methods(["GET", "POST"])
def category_list(request):
    restaurant = request.restaurant

    if request.method == "GET":
        categories = Category.objects.filter(restaurant=restaurant).annotate(products_total=Count('products'))
        return JsonResponse({
            'categories': [
                dict(serialize_category(c), products_count=c.products_total) for c in categories
            ]
        })

    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)
    data.setdefault('is_active', True)
    data.setdefault('display_order', Category.objects.filter(restaurant=restaurant).count())

    if Category.objects.filter(restaurant=restaurant, name__iexact=(data.get('name') or '').strip()).exists():
        return JsonResponse({'error': 'A category with this name already exists'}, status=400)

    form = CategoryForm(data)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid category', 'errors': form.errors}, status=400)

    category = form.save(commit=False)
    category.restaurant = restaurant
    category.save()
    logger.info(f'Category "{category.name}" created for restaurant {restaurant.id}')

    return JsonResponse({'success': True, 'category': serialize_category(category)}, status=201)


@restaurant_admin_required
@require_http_methods(["POST", "DELETE"])
def category_detail(request, category_id):
    """POST updates, DELETE removes the category; its products become uncategorized."""
    category = get_object_or_404(Category, id=category_id, restaurant=request.restaurant)

    if request.method == "DELETE":
        name = category.name
        category.delete()
        return JsonResponse({'success': True, 'message': f'Category "{name}" deleted'})

    try:
        incoming = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    form = CategoryForm(merge_with_instance(category, CategoryForm.Meta.fields, incoming), instance=category)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid category', 'errors': form.errors}, status=400)
    category = form.save()

    return JsonResponse({'success': True, 'category': serialize_category(category)})


# ----------------------------------------------------------------------
# Back-office: products
# ----------------------------------------------------------------------

@restaurant_admin_required
@require_http_methods(["GET", "POST"])
def product_list(request):
    """
    GET: newest first, filter with ?category=<id>|none, ?available=true|false, ?search=
    POST: create a product (multipart when an image is attached).
    """
    restaurant = request.restaurant

    if request.method == "GET":
        products = Product.objects.filter(restaurant=restaurant).select_related('category')

        category = request.GET.get('category')
        try:
            page_size = parse_positive_int(request.GET.get('page_size'), 12, maximum=100)
            if category == 'none':
                products = products.filter(category__isnull=True)
            elif category:
                products = products.filter(category_id=parse_uuid(category))
        except ValueError as e:
            return JsonResponse({'error': str(e)}, status=400)

        available = request.GET.get('available')
        if available in ('true', 'false'):
            products = products.filter(is_available=(available == 'true'))

        search = request.GET.get('search', '').strip()
        if search:
            products = products.filter(name__icontains=search)

        paginator = Paginator(products, page_size)
        page_obj = paginator.get_page(request.GET.get('page'))

        return JsonResponse({
            'products': [p.to_dict() for p in page_obj],
            'page': page_obj.number,
            'num_pages': paginator.num_pages,
            'count': paginator.count,
        })

    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)
    data.setdefault('is_available', True)

    form = ProductForm(data, request.FILES, restaurant=restaurant)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid product', 'errors': form.errors}, status=400)

    product = form.save(commit=False)
    product.restaurant = restaurant
    product.save()
    logger.info(f'Product "{product.name}" created for restaurant {restaurant.id}')

    return JsonResponse({'success': True, 'product': product.to_dict()}, status=201)


@restaurant_admin_required
@require_http_methods(["GET", "POST", "DELETE"])
def product_manage(request, product_id):
    product = get_object_or_404(Product, id=product_id, restaurant=request.restaurant)

    if request.method == "GET":
        return JsonResponse(product.to_dict())

    if request.method == "DELETE":
        name = product.name
        product.delete()
        return JsonResponse({'success': True, 'message': f'Product "{name}" deleted'})

    try:
        incoming = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    data = merge_with_instance(product, ProductForm.Meta.fields, incoming, skip=('image',))
    form = ProductForm(data, request.FILES, instance=product, restaurant=request.restaurant)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid product', 'errors': form.errors}, status=400)
    product = form.save()

    return JsonResponse({'success': True, 'product': product.to_dict()})


@restaurant_admin_required
@require_POST
def toggle_product_availability(request, product_id):
    product = get_object_or_404(Product, id=product_id, restaurant=request.restaurant)
    product.is_available = not product.is_available
    product.save(update_fields=['is_available', 'updated_at'])

    status_text = "available" if product.is_available else "unavailable"
    return JsonResponse({
        'success': True,
        'message': f"{product.name} marked as {status_text}.",
        'is_available': product.is_available,
    })
