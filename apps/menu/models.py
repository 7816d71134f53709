from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
import uuid


class Category(models.Model):
    """Menu sections like Burgers, Drinks, Desserts, per restaurant."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='categories'
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'menu_category'
        verbose_name = 'Category'
        verbose_name_plural = 'Categories'
        ordering = ['display_order', 'name']
        unique_together = [('restaurant', 'name')]
        indexes = [
            models.Index(fields=['restaurant', 'is_active']),
            models.Index(fields=['display_order']),
        ]

    def __str__(self):
        return self.name

    def get_available_products(self):
        """Products in this category that customers can order"""
        return self.products.filter(is_available=True)

    def get_products_count(self):
        return self.products.count()


class Product(models.Model):
    """A menu item. Weight-priced products are sold per kg."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='products'
    )
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        related_name='products',
        blank=True,
        null=True
    )

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    price = models.DecimalField(
        max_digits=8,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
        help_text="Unit price, or price per kg for weight-priced products"
    )
    image = models.ImageField(upload_to='products/', blank=True, null=True)
    image_url = models.URLField(blank=True)

    is_available = models.BooleanField(default=True)
    is_price_by_weight = models.BooleanField(default=False)
    preparation_time = models.PositiveIntegerField(
        default=15,
        help_text="Preparation time in minutes"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'menu_product'
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['restaurant', 'is_available']),
            models.Index(fields=['category']),
        ]

    def __str__(self):
        return f"{self.name} - R$ {self.price}"

    def get_image_url(self):
        if self.image:
            return self.image.url
        return self.image_url or None

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'description': self.description,
            'price': str(self.price),
            'image_url': self.get_image_url(),
            'category_id': str(self.category_id) if self.category_id else None,
            'category': self.category.name if self.category else None,
            'is_available': self.is_available,
            'is_price_by_weight': self.is_price_by_weight,
            'preparation_time': self.preparation_time,
        }
