import logging

from django.conf import settings
from django.contrib.auth import authenticate, login, logout
from django.contrib.auth.decorators import login_required
from django.contrib.auth.forms import PasswordResetForm, SetPasswordForm
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.utils.encoding import force_str
from django.utils.http import urlsafe_base64_decode
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_http_methods, require_POST
from rest_framework.authtoken.models import Token

from apps.reports.utils import create_audit_log

from .forms import SignupForm, AdminSignupForm, LoginForm, ProfileForm
from .models import User
from .services import ensure_admin_access, get_active_restaurant
from .utils import parse_request_data

logger = logging.getLogger(__name__)

SESSION_REMEMBER_SECONDS = 1209600  # 2 weeks


def serialize_user(user):
    restaurant = get_active_restaurant(user)
    return {
        'id': str(user.id),
        'email': user.email,
        'first_name': user.first_name,
        'last_name': user.last_name,
        'full_name': user.get_full_name(),
        'phone_number': user.phone_number,
        'cpf_cnpj': user.cpf_cnpj,
        'role': user.role,
        'status': user.status,
        'avatar_url': user.avatar.url if user.avatar else None,
        'restaurant_id': str(restaurant.id) if restaurant else None,
        'can_manage_restaurants': user.can_manage_restaurants(),
    }


def _start_session(request, user, remember_me=True):
    """
    Log the user in and return their DRF token.

    The session cookie authenticates every endpoint. The token is accepted
    only by the DRF payment API under /api/payments/ (TokenAuthentication),
    for clients that talk to it without cookies.
    """
    login(request, user, backend='django.contrib.auth.backends.ModelBackend')
    request.session.set_expiry(SESSION_REMEMBER_SECONDS if remember_me else 0)
    token, _ = Token.objects.get_or_create(user=user)
    return token.key


@ensure_csrf_cookie
@require_http_methods(["GET"])
def csrf(request):
    """Sets the CSRF cookie for the web client"""
    return JsonResponse({'success': True})


@require_POST
def signup_view(request):
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    form = SignupForm(data)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid signup data', 'errors': form.errors}, status=400)

    user = form.save()
    token = _start_session(request, user)
    create_audit_log(request, 'Signup', 'Customer account created', user=user)
    logger.info(f'Customer account created: {user.pk}')

    return JsonResponse({'success': True, 'token': token, 'user': serialize_user(user)}, status=201)


@require_POST
def admin_signup_view(request):
    """Sign up a restaurant owner: account, restaurant and default payment methods in one go."""
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    form = AdminSignupForm(data)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid signup data', 'errors': form.errors}, status=400)

    user = form.save()
    restaurant = ensure_admin_access(
        user,
        full_name=user.get_full_name() if (user.first_name or user.last_name) else None,
        store_name=form.cleaned_data.get('store_name'),
        phone=form.cleaned_data.get('phone') or user.phone_number,
    )
    token = _start_session(request, user)
    create_audit_log(request, 'Signup', 'Restaurant admin account created', restaurant=restaurant, user=user)

    return JsonResponse({
        'success': True,
        'token': token,
        'user': serialize_user(user),
        'restaurant_id': str(restaurant.id),
    }, status=201)


@login_required
@require_POST
def ensure_admin_access_view(request):
    """Turn the signed-in account into a restaurant admin (idempotent)."""
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    restaurant = ensure_admin_access(
        request.user,
        full_name=data.get('full_name') or request.user.get_full_name(),
        store_name=data.get('store_name'),
        phone=data.get('phone'),
    )
    return JsonResponse({'success': True, 'restaurant_id': str(restaurant.id), 'user': serialize_user(request.user)})


@require_POST
def login_view(request):
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    form = LoginForm(data)
    if not form.is_valid():
        return JsonResponse({'error': 'Please provide both email and password', 'errors': form.errors}, status=400)

    email = form.cleaned_data['email'].strip().lower()
    known_user = User.objects.filter(email__iexact=email).first()
    if known_user is not None and known_user.is_account_locked():
        return JsonResponse(
            {'error': 'Account is temporarily locked due to multiple failed login attempts.'}, status=403
        )

    user = authenticate(request, username=email, password=form.cleaned_data['password'])
    if user is None:
        if known_user is not None:
            known_user.increment_failed_login()
            create_audit_log(request, 'Login', 'Failed login attempt', user=known_user)
        return JsonResponse({'error': 'Invalid credentials. Please check your email and password.'}, status=401)

    if user.status != 'active':
        return JsonResponse({'error': 'Your account is not active. Please contact the administrator.'}, status=403)

    token = _start_session(request, user, form.cleaned_data['remember_me'])
    user.increment_login_count()
    create_audit_log(request, 'Login', 'User logged in successfully', user=user)

    return JsonResponse({'success': True, 'token': token, 'user': serialize_user(user)})


@login_required
@require_POST
def logout_view(request):
    user = request.user
    create_audit_log(request, 'Logout', 'User logged out')
    Token.objects.filter(user=user).delete()
    logout(request)
    return JsonResponse({'success': True, 'message': 'You have been logged out successfully.'})


@login_required
@require_http_methods(["GET", "POST"])
def me_view(request):
    """GET the profile (with restaurant id); POST updates name and phone."""
    if request.method == "GET":
        return JsonResponse(serialize_user(request.user))

    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    user = request.user
    current = {'first_name': user.first_name, 'last_name': user.last_name, 'phone_number': user.phone_number}
    current.update({k: v for k, v in data.items() if k in current})
    form = ProfileForm(current, instance=user)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid profile data', 'errors': form.errors}, status=400)
    user = form.save()

    return JsonResponse({'success': True, 'message': 'Profile updated', 'user': serialize_user(user)})


@require_POST
def password_reset_request(request):
    """Email a reset link. Answers the same whether or not the address exists."""
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    form = PasswordResetForm(data)
    if not form.is_valid():
        return JsonResponse({'error': 'Enter a valid email address', 'errors': form.errors}, status=400)

    form.save(
        request=request,
        use_https=request.is_secure(),
        from_email=settings.DEFAULT_FROM_EMAIL,
        subject_template_name='registration/storefront_password_reset_subject.txt',
        email_template_name='registration/storefront_password_reset_email.txt',
        extra_email_context={'frontend_url': settings.STOREFRONT_SETTINGS['FRONTEND_URL'].rstrip('/')},
    )
    return JsonResponse({
        'success': True,
        'message': 'If an account exists for this email, a reset link has been sent.',
    })


@require_POST
def password_reset_confirm(request, uidb64, token):
    try:
        data = parse_request_data(request)
    except ValueError as e:
        return JsonResponse({'error': str(e)}, status=400)

    try:
        uid = force_str(urlsafe_base64_decode(uidb64))
        user = User.objects.get(pk=uid)
    except (TypeError, ValueError, OverflowError, ValidationError, User.DoesNotExist):
        user = None
    if user is None or not default_token_generator.check_token(user, token):
        return JsonResponse({'error': 'This reset link is invalid or has expired'}, status=400)

    form = SetPasswordForm(user, data)
    if not form.is_valid():
        return JsonResponse({'error': 'Invalid password', 'errors': form.errors}, status=400)
    form.save()
    Token.objects.filter(user=user).delete()
    create_audit_log(request, 'Password reset', 'Password changed through reset link', user=user)

    return JsonResponse({'success': True, 'message': 'Your password has been changed. You can sign in now.'})
