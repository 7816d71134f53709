from django.db import models
from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.utils import timezone
from datetime import timedelta
import uuid


class User(AbstractUser):
    # Role-based access: customers order, restaurant admins run one store

    ROLE_CUSTOMER = 'customer'
    ROLE_RESTAURANT_ADMIN = 'restaurant_admin'
    ROLE_SYSTEM_ADMIN = 'system_admin'

    ROLE_CHOICES = [
        (ROLE_CUSTOMER, 'Customer'),
        (ROLE_RESTAURANT_ADMIN, 'Restaurant Admin'),
        (ROLE_SYSTEM_ADMIN, 'System Admin'),
    ]

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
        ('suspended', 'Suspended'),
    ]

    MAX_FAILED_LOGINS = 5
    LOCKOUT_MINUTES = 30

    # Core fields
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, db_index=True)
    phone_regex = RegexValidator(
        regex=r'^\+?\d{10,15}$',
        message="Phone number must have 10 to 15 digits, optionally prefixed by +"
    )
    phone_number = models.CharField(
        validators=[phone_regex],
        max_length=17,
        blank=True,
        help_text="Digits only, with area code"
    )
    cpf_cnpj = models.CharField(
        max_length=14,
        blank=True,
        default='',
        help_text="CPF (11 digits) or CNPJ (14 digits) of a restaurant owner"
    )

    # Profile fields
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_CUSTOMER)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    avatar = models.ImageField(upload_to='avatars/', blank=True, null=True)

    # Timestamps
    date_joined = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Activity tracking
    login_count = models.PositiveIntegerField(default=0)
    failed_login_attempts = models.PositiveIntegerField(default=0)
    account_locked_until = models.DateTimeField(blank=True, null=True)

    # Use email as the primary identifier
    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    class Meta:
        db_table = 'auth_user'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-date_joined']
        indexes = [
            models.Index(fields=['role']),
            models.Index(fields=['status']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['cpf_cnpj'],
                condition=~models.Q(cpf_cnpj=''),
                name='unique_user_cpf_cnpj',
            ),
        ]

    def __str__(self):
        return f"{self.get_full_name()} ({self.email})"

    def get_full_name(self):
        """Return the full name of the user"""
        return f"{self.first_name} {self.last_name}".strip() or self.username

    def is_customer(self):
        return self.role == self.ROLE_CUSTOMER

    def is_restaurant_admin(self):
        return self.role == self.ROLE_RESTAURANT_ADMIN

    def is_system_admin(self):
        """Check if user is a system admin"""
        return self.role == self.ROLE_SYSTEM_ADMIN or self.is_superuser

    def can_manage_restaurants(self):
        """Check if user may use the back-office at all"""
        return (self.is_restaurant_admin() or self.is_system_admin()) and self.status == 'active'

    def can_manage_restaurant(self, restaurant):
        """Check if user may change the given restaurant"""
        if not self.can_manage_restaurants():
            return False
        return self.is_system_admin() or restaurant.owner_id == self.pk

    def get_restaurant(self):
        """Return the restaurant this user runs, or None"""
        return self.restaurants.order_by('created_at').first()

    def increment_login_count(self):
        """Increment user's login count"""
        self.login_count += 1
        self.failed_login_attempts = 0  # Reset failed attempts on successful login
        self.save(update_fields=['login_count', 'failed_login_attempts'])

    def increment_failed_login(self):
        """Increment failed login attempts"""
        self.failed_login_attempts += 1

        if self.failed_login_attempts >= self.MAX_FAILED_LOGINS:
            self.account_locked_until = timezone.now() + timedelta(minutes=self.LOCKOUT_MINUTES)

        self.save(update_fields=['failed_login_attempts', 'account_locked_until'])

    def is_account_locked(self):
        """Check if account is currently locked"""
        if self.account_locked_until:
            if timezone.now() < self.account_locked_until:
                return True
            # Lock expired
            self.account_locked_until = None
            self.failed_login_attempts = 0
            self.save(update_fields=['account_locked_until', 'failed_login_attempts'])
        return False
