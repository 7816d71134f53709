from django import forms

from .models import Category, Product


class CategoryForm(forms.ModelForm):
    class Meta:
        model = Category
        fields = ["name", "description", "display_order", "is_active"]


class ProductForm(forms.ModelForm):
    class Meta:
        model = Product
        fields = [
            "name", "description", "price", "category", "image", "image_url",
            "is_available", "is_price_by_weight", "preparation_time",
        ]

    def __init__(self, *args, restaurant=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.restaurant = restaurant
        if restaurant is not None:
            # Products can only be filed under the same restaurant's categories
            self.fields["category"].queryset = Category.objects.filter(restaurant=restaurant)
        self.fields["preparation_time"].required = False

    def clean_preparation_time(self):
        value = self.cleaned_data.get("preparation_time")
        return 15 if value is None else value
