from django import forms

from apps.authentication.utils import only_digits, parse_decimal

from .models import Order


class CheckoutForm(forms.Form):
    """Contact, delivery and payment data a customer submits when placing an order"""

    name = forms.CharField(max_length=255)
    phone = forms.CharField(max_length=20)
    email = forms.EmailField(required=False)
    cpf_cnpj = forms.CharField(max_length=18, required=False)

    delivery_option = forms.ChoiceField(choices=Order.DELIVERY_OPTION_CHOICES, initial=Order.DELIVERY)
    street = forms.CharField(max_length=255, required=False)
    number = forms.CharField(max_length=20, required=False)
    neighborhood = forms.CharField(max_length=100, required=False)
    city = forms.CharField(max_length=100, required=False)
    state = forms.CharField(max_length=2, required=False)
    zip_code = forms.CharField(max_length=9, required=False)
    complement = forms.CharField(max_length=255, required=False)
    latitude = forms.FloatField(required=False)
    longitude = forms.FloatField(required=False)

    payment_method = forms.UUIDField()
    change_for = forms.CharField(required=False)
    notes = forms.CharField(required=False, max_length=1000)

    def clean_name(self):
        name = self.cleaned_data['name'].strip()
        if not name:
            raise forms.ValidationError("Name is required")
        return name

    def clean_phone(self):
        phone = only_digits(self.cleaned_data['phone'])
        if len(phone) < 10:
            raise forms.ValidationError("Enter a phone number with area code (at least 10 digits)")
        return phone

    def clean_cpf_cnpj(self):
        value = only_digits(self.cleaned_data.get('cpf_cnpj'))
        if value and len(value) not in (11, 14):
            raise forms.ValidationError("CPF must have 11 digits and CNPJ 14 digits")
        return value

    def clean_state(self):
        return (self.cleaned_data.get('state') or '').upper()

    def clean_change_for(self):
        try:
            return parse_decimal(self.cleaned_data.get('change_for'))
        except ValueError:
            raise forms.ValidationError("Enter a valid amount")

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('delivery_option') == Order.DELIVERY:
            for field in ('street', 'number', 'neighborhood', 'city'):
                if not cleaned_data.get(field):
                    self.add_error(field, "Required for delivery")

        has_lat = cleaned_data.get('latitude') is not None
        has_lon = cleaned_data.get('longitude') is not None
        if has_lat != has_lon:
            raise forms.ValidationError("Latitude and longitude must be sent together")
        return cleaned_data
