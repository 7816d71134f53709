from django.db import IntegrityError, models, transaction
from django.db.models import Sum
from django.core.validators import MinValueValidator
from django.conf import settings
from django.utils import timezone
from decimal import Decimal
import uuid


class CashRegisterError(Exception):
    """Raised when opening a register that is already open, or closing one that is not."""


class CashRegister(models.Model):
    """One cash drawer session, from opening to closing"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='cash_registers'
    )

    opened_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='opened_cash_registers',
        null=True
    )
    opened_at = models.DateTimeField(default=timezone.now)
    opening_balance = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )

    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name='closed_cash_registers',
        blank=True,
        null=True
    )
    closed_at = models.DateTimeField(blank=True, null=True)
    closing_balance = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        blank=True,
        null=True,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    notes = models.TextField(blank=True)

    class Meta:
        db_table = 'cashier_register'
        verbose_name = 'Cash Register'
        verbose_name_plural = 'Cash Registers'
        ordering = ['-opened_at']
        indexes = [
            models.Index(fields=['restaurant', 'closed_at']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['restaurant'],
                condition=models.Q(closed_at__isnull=True),
                name='one_open_register_per_restaurant',
            ),
        ]

    def __str__(self):
        state = "open" if self.is_open else f"closed {self.closed_at:%Y-%m-%d %H:%M}"
        return f"Register {self.restaurant} ({state})"

    @property
    def is_open(self):
        return self.closed_at is None

    @classmethod
    def current_for(cls, restaurant):
        return cls.objects.filter(restaurant=restaurant, closed_at__isnull=True).order_by('-opened_at').first()

    @classmethod
    def open(cls, restaurant, user, opening_balance, notes=""):
        with transaction.atomic():
            # Opens for one restaurant queue up on its row
            type(restaurant).objects.select_for_update().get(pk=restaurant.pk)
            if cls.current_for(restaurant) is not None:
                raise CashRegisterError("A cash register is already open")
            try:
                with transaction.atomic():
                    return cls.objects.create(
                        restaurant=restaurant,
                        opened_by=user,
                        opening_balance=opening_balance,
                        notes=notes,
                    )
            except IntegrityError:
                raise CashRegisterError("A cash register is already open")

    def close(self, user, closing_balance, notes=""):
        with transaction.atomic():
            current = type(self).objects.select_for_update().get(pk=self.pk)
            if not current.is_open:
                raise CashRegisterError("This cash register is already closed")
            self.closed_by = user
            self.closed_at = timezone.now()
            self.closing_balance = closing_balance
            if notes:
                self.notes = f"{current.notes}\n{notes}".strip()
            self.save(update_fields=['closed_by', 'closed_at', 'closing_balance', 'notes'])
        return self

    def get_sales(self):
        """Orders counted as sales between opening and closing (or now)"""
        from apps.orders.models import Order

        orders = Order.objects.filter(
            restaurant=self.restaurant,
            status__in=Order.SALE_STATUSES,
            created_at__gte=self.opened_at,
        )
        if self.closed_at:
            orders = orders.filter(created_at__lte=self.closed_at)
        return orders

    def get_sales_total(self):
        total = self.get_sales().aggregate(total=Sum('total_amount'))['total']
        return total or Decimal('0.00')

    def get_expected_balance(self):
        return (self.opening_balance + self.get_sales_total()).quantize(Decimal('0.01'))

    def to_dict(self, include_sales=False):
        data = {
            'id': str(self.id),
            'is_open': self.is_open,
            'opened_at': self.opened_at.isoformat(),
            'opened_by': self.opened_by.get_full_name() if self.opened_by else None,
            'opening_balance': str(self.opening_balance),
            'closed_at': self.closed_at.isoformat() if self.closed_at else None,
            'closed_by': self.closed_by.get_full_name() if self.closed_by else None,
            'closing_balance': str(self.closing_balance) if self.closing_balance is not None else None,
            'notes': self.notes,
        }
        if include_sales:
            sales = self.get_sales()
            sales_total = self.get_sales_total()
            data.update({
                'orders_count': sales.count(),
                'sales_total': str(sales_total),
                'current_balance': str((self.opening_balance + sales_total).quantize(Decimal('0.01'))),
            })
        return data
