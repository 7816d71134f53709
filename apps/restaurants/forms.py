from django import forms

from .models import Restaurant, DeliveryZone
from .utils import parse_time_string


class RestaurantForm(forms.ModelForm):
    class Meta:
        model = Restaurant
        fields = [
            "name", "description", "logo", "logo_url", "phone", "email",
            "street", "number", "neighborhood", "city", "state", "zip_code", "address",
            "latitude", "longitude", "is_active", "delivery_enabled",
            "notification_sound", "notification_sound_url",
        ]

    def clean_state(self):
        return (self.cleaned_data.get("state") or "").upper()

    def clean(self):
        cleaned = super().clean()
        lat, lon = cleaned.get("latitude"), cleaned.get("longitude")
        if (lat is None) != (lon is None):
            raise forms.ValidationError("Latitude and longitude must be given together.")
        return cleaned


class BusinessHourForm(forms.Form):
    day_of_week = forms.IntegerField(min_value=0, max_value=6)
    is_open = forms.BooleanField(required=False)
    open_time = forms.CharField(required=False)
    close_time = forms.CharField(required=False)

    def clean_open_time(self):
        try:
            return parse_time_string(self.cleaned_data.get("open_time"))
        except ValueError as e:
            raise forms.ValidationError(str(e))

    def clean_close_time(self):
        try:
            return parse_time_string(self.cleaned_data.get("close_time"))
        except ValueError as e:
            raise forms.ValidationError(str(e))

    def clean(self):
        cleaned = super().clean()
        if cleaned.get("is_open") and (not cleaned.get("open_time") or not cleaned.get("close_time")):
            raise forms.ValidationError("Opening and closing times are required for open days.")
        return cleaned


class DeliveryZoneForm(forms.ModelForm):
    class Meta:
        model = DeliveryZone
        fields = [
            "name", "delivery_fee", "max_distance_km", "min_delivery_time_minutes",
            "center_latitude", "center_longitude", "is_active",
        ]
