from django.db import models
from django.core.validators import MinValueValidator
from django.conf import settings
from django.utils import timezone
from decimal import Decimal
import uuid


class PaymentMethod(models.Model):
    """A way a restaurant accepts payment, shown at checkout when active"""

    TYPE_CASH = 'cash'
    TYPE_PIX = 'pix'
    TYPE_ONLINE = 'online'
    TYPE_CARD_ON_DELIVERY = 'card_on_delivery'
    TYPE_OTHER = 'other'

    TYPE_CHOICES = [
        (TYPE_CASH, 'Cash'),
        (TYPE_PIX, 'PIX'),
        (TYPE_ONLINE, 'Online payment'),
        (TYPE_CARD_ON_DELIVERY, 'Card on delivery'),
        (TYPE_OTHER, 'Other'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='payment_methods'
    )
    name = models.CharField(max_length=100)
    method_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_OTHER)
    description = models.CharField(max_length=255, blank=True)
    icon = models.CharField(max_length=50, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments_method'
        verbose_name = 'Payment Method'
        verbose_name_plural = 'Payment Methods'
        ordering = ['created_at', 'name']
        unique_together = [('restaurant', 'name')]

    def __str__(self):
        return f"{self.name} ({self.restaurant})"

    @property
    def is_online(self):
        return self.method_type == self.TYPE_ONLINE

    @property
    def is_cash(self):
        return self.method_type == self.TYPE_CASH

    @classmethod
    def ensure_default_methods(cls, restaurant):
        """Create the standard methods a new restaurant starts with. Returns the ones created."""
        created = []
        for name, method_type, description, icon in settings.STOREFRONT_SETTINGS['DEFAULT_PAYMENT_METHODS']:
            method, was_created = cls.objects.get_or_create(
                restaurant=restaurant,
                name=name,
                defaults={
                    'method_type': method_type,
                    'description': description,
                    'icon': icon,
                    'is_active': True,
                },
            )
            if was_created:
                created.append(method)
        return created

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'method_type': self.method_type,
            'description': self.description,
            'icon': self.icon,
            'is_active': self.is_active,
        }


class PaymentSettings(models.Model):
    """Mercado Pago credentials for one restaurant"""

    restaurant = models.OneToOneField(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='payment_settings'
    )
    public_key = models.CharField(max_length=255, blank=True)
    # Server side only, never serialized
    access_token = models.CharField(max_length=255, blank=True)
    webhook_secret = models.CharField(max_length=255, blank=True)
    token_verified = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments_settings'
        verbose_name = 'Payment Settings'
        verbose_name_plural = 'Payment Settings'

    def __str__(self):
        return f"Payment settings for {self.restaurant}"

    @classmethod
    def get_access_token(cls, restaurant):
        """Restaurant token first, then the globally configured one"""
        token = cls.objects.filter(restaurant=restaurant).values_list('access_token', flat=True).first()
        return token or settings.MERCADO_PAGO_CONFIG['ACCESS_TOKEN']

    @classmethod
    def get_webhook_secret(cls, restaurant):
        secret = cls.objects.filter(restaurant=restaurant).values_list('webhook_secret', flat=True).first()
        return secret or settings.MERCADO_PAGO_CONFIG['WEBHOOK_SECRET']


class Payment(models.Model):
    """One online payment attempt for an order"""

    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('processing', 'Processing'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
        ('cancelled', 'Cancelled'),
        ('refunded', 'Refunded'),
    ]

    # Mercado Pago payment statuses mapped onto ours
    PROVIDER_STATUS_MAP = {
        'approved': 'completed',
        'authorized': 'processing',
        'in_process': 'processing',
        'in_mediation': 'processing',
        'pending': 'pending',
        'rejected': 'failed',
        'cancelled': 'cancelled',
        'refunded': 'refunded',
        'charged_back': 'refunded',
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        'orders.Order',
        on_delete=models.CASCADE,
        related_name='payments'
    )
    provider = models.CharField(max_length=30, default='mercado_pago')
    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    currency = models.CharField(max_length=3, default='BRL')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')

    # Provider references
    preference_id = models.CharField(max_length=100, blank=True, db_index=True)
    transaction_id = models.CharField(max_length=100, blank=True, db_index=True)
    provider_status = models.CharField(max_length=30, blank=True)
    provider_status_detail = models.CharField(max_length=100, blank=True)
    provider_response = models.JSONField(default=dict, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    completed_at = models.DateTimeField(blank=True, null=True)

    failure_reason = models.TextField(blank=True)
    retry_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'payments_payment'
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at']),
            models.Index(fields=['status']),
        ]

    def __str__(self):
        return f"Payment {self.transaction_id or self.id} - {self.amount} {self.currency}"

    def apply_provider_payment(self, mp_payment):
        """Copy a Mercado Pago payment resource onto this record"""
        provider_status = mp_payment.get('status', '')
        self.transaction_id = str(mp_payment.get('id') or self.transaction_id)
        self.provider_status = provider_status
        self.provider_status_detail = mp_payment.get('status_detail') or ''
        self.provider_response = mp_payment
        status = self.PROVIDER_STATUS_MAP.get(provider_status, 'pending')

        if status == 'completed' and self.status != 'completed':
            self.completed_at = timezone.now()
        if status == 'failed' and self.status != 'failed':
            self.retry_count += 1
            self.failure_reason = self.provider_status_detail
        self.status = status
        self.save()
        return self


class PaymentWebhook(models.Model):
    """Store webhook data from payment providers"""

    payment = models.ForeignKey(
        Payment,
        on_delete=models.SET_NULL,
        related_name='webhooks',
        blank=True,
        null=True
    )
    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='payment_webhooks'
    )
    provider = models.CharField(max_length=20, default='mercado_pago')
    event_type = models.CharField(max_length=50, blank=True)
    webhook_data = models.JSONField(default=dict)
    processed = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(blank=True, null=True)

    class Meta:
        db_table = 'payments_webhook'
        verbose_name = 'Payment Webhook'
        verbose_name_plural = 'Payment Webhooks'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.provider} {self.event_type} webhook at {self.created_at}"

    def mark_processed(self, payment=None):
        self.processed = True
        self.processed_at = timezone.now()
        if payment is not None:
            self.payment = payment
        self.save(update_fields=['processed', 'processed_at', 'payment'])
