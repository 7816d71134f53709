"""
Session cart.

Each restaurant gets its own cart inside ``request.session['carts']``. Lines
are stored as plain strings so the session serializer can handle them.
"""

import uuid
from decimal import Decimal, InvalidOperation

from apps.menu.models import Product

CART_SESSION_KEY = "carts"
WEIGHT_QUANTIZE = Decimal("0.001")
MONEY_QUANTIZE = Decimal("0.01")


class CartError(ValueError):
    """Invalid cart operation (bad quantity, unknown line, unavailable product)."""


class Cart:
    def __init__(self, session, restaurant_id):
        self.session = session
        self.restaurant_id = str(restaurant_id)
        carts = self.session.setdefault(CART_SESSION_KEY, {})
        self.lines = carts.setdefault(self.restaurant_id, [])

    def __iter__(self):
        return iter(self.lines)

    def __len__(self):
        return len(self.lines)

    def save(self):
        self.session[CART_SESSION_KEY][self.restaurant_id] = self.lines
        self.session.modified = True

    @staticmethod
    def _parse_quantity(quantity, by_weight):
        try:
            value = Decimal(str(quantity).replace(",", "."))
        except (InvalidOperation, TypeError):
            raise CartError(f"Invalid quantity: {quantity}")
        if not value.is_finite():
            raise CartError(f"Invalid quantity: {quantity}")
        if by_weight:
            return value.quantize(WEIGHT_QUANTIZE)
        if value != value.to_integral_value():
            raise CartError("Quantity must be a whole number")
        return value.quantize(Decimal("1"))

    def get_line(self, line_id):
        for line in self.lines:
            if line["id"] == line_id:
                return line
        raise CartError("Item is not in the cart")

    def add(self, product, quantity=1, notes=""):
        """
        Add a product. Weight-priced products always get their own line;
        others merge with a line for the same product and the same notes.
        """
        if str(product.restaurant_id) != self.restaurant_id:
            raise CartError("Product belongs to another restaurant")
        if not product.is_available:
            raise CartError(f"{product.name} is not available")

        quantity = self._parse_quantity(quantity, product.is_price_by_weight)
        if quantity <= 0:
            raise CartError("Quantity must be greater than zero")
        notes = (notes or "").strip()

        if not product.is_price_by_weight:
            for line in self.lines:
                if line["product_id"] == str(product.id) and line["notes"] == notes:
                    line["quantity"] = str(Decimal(line["quantity"]) + quantity)
                    self.save()
                    return line

        line = {
            "id": uuid.uuid4().hex,
            "product_id": str(product.id),
            "name": product.name,
            "price": str(product.price),
            "quantity": str(quantity),
            "notes": notes,
            "is_price_by_weight": product.is_price_by_weight,
            "image_url": product.get_image_url(),
        }
        self.lines.append(line)
        self.save()
        return line

    def update_quantity(self, line_id, quantity):
        """Set a line's quantity; zero or less removes the line."""
        line = self.get_line(line_id)
        quantity = self._parse_quantity(quantity, line["is_price_by_weight"])
        if quantity <= 0:
            return self.remove(line_id)
        line["quantity"] = str(quantity)
        self.save()
        return line

    def remove(self, line_id):
        self.get_line(line_id)
        self.lines = [line for line in self.lines if line["id"] != line_id]
        self.save()
        return None

    def clear(self):
        self.lines = []
        self.save()

    def refresh(self):
        """
        Re-read prices and names from the database. Lines whose product was
        deleted, became unavailable or moved elsewhere are dropped.
        Returns the names of dropped lines.
        """
        ids = {line["product_id"] for line in self.lines}
        products = {
            str(p.id): p
            for p in Product.objects.filter(id__in=ids, restaurant_id=self.restaurant_id, is_available=True)
        }
        kept, dropped = [], []
        for line in self.lines:
            product = products.get(line["product_id"])
            if product is None:
                dropped.append(line["name"])
                continue
            line["name"] = product.name
            line["price"] = str(product.price)
            line["image_url"] = product.get_image_url()
            kept.append(line)
        self.lines = kept
        self.save()
        return dropped

    @staticmethod
    def line_total(line):
        return (Decimal(line["price"]) * Decimal(line["quantity"])).quantize(MONEY_QUANTIZE)

    @property
    def count(self):
        """Items in the cart; a weighed line counts as one item."""
        total = 0
        for line in self.lines:
            total += 1 if line["is_price_by_weight"] else int(Decimal(line["quantity"]))
        return total

    @property
    def subtotal(self):
        return sum((self.line_total(line) for line in self.lines), Decimal("0.00"))

    def to_dict(self, delivery_fee=Decimal("0.00")):
        subtotal = self.subtotal
        return {
            "restaurant_id": self.restaurant_id,
            "items": [dict(line, total=str(self.line_total(line))) for line in self.lines],
            "count": self.count,
            "subtotal": str(subtotal),
            "delivery_fee": str(delivery_fee),
            "total": str(subtotal + delivery_fee),
            "is_empty": not self.lines,
        }
