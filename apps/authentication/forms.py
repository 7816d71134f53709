import uuid

from django import forms
from django.contrib.auth.password_validation import validate_password

from .models import User
from .utils import only_digits


class SignupForm(forms.ModelForm):
    password = forms.CharField(widget=forms.PasswordInput, min_length=6)

    class Meta:
        model = User
        fields = ["email", "first_name", "last_name", "phone_number"]

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("An account with this email already exists")
        return email

    def clean_phone_number(self):
        return only_digits(self.cleaned_data.get("phone_number"))

    def clean_password(self):
        password = self.cleaned_data["password"]
        validate_password(password)
        return password

    def save(self, commit=True):
        user = super().save(commit=False)
        # Login is by email; username only has to be unique
        base = user.email.split("@")[0][:140]
        user.username = f"{base}-{uuid.uuid4().hex[:8]}"
        user.set_password(self.cleaned_data["password"])
        if commit:
            user.save()
        return user


class AdminSignupForm(SignupForm):
    """Restaurant owners also give a store name, a mobile phone and their CPF or CNPJ."""
    store_name = forms.CharField(max_length=200)
    cpf_cnpj = forms.CharField(max_length=18)
    phone = forms.CharField(max_length=20)

    def clean_store_name(self):
        name = self.cleaned_data["store_name"].strip()
        if not name:
            raise forms.ValidationError("Store name is required")
        return name

    def clean_cpf_cnpj(self):
        value = only_digits(self.cleaned_data.get("cpf_cnpj"))
        if len(value) not in (11, 14):
            raise forms.ValidationError("CPF must have 11 digits and CNPJ 14 digits")
        if User.objects.filter(cpf_cnpj=value).exists():
            raise forms.ValidationError("This CPF/CNPJ is already registered to another account")
        return value

    def clean_phone(self):
        value = only_digits(self.cleaned_data.get("phone"))
        if len(value) != 11:
            raise forms.ValidationError("Phone must have 11 digits (area code + 9 digits)")
        if User.objects.filter(phone_number=value).exists():
            raise forms.ValidationError("This phone is already registered to another account")
        return value

    def save(self, commit=True):
        user = super().save(commit=False)
        user.cpf_cnpj = self.cleaned_data["cpf_cnpj"]
        user.phone_number = self.cleaned_data["phone"]
        if commit:
            user.save()
        return user


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput)
    remember_me = forms.BooleanField(required=False)


class ProfileForm(forms.ModelForm):
    class Meta:
        model = User
        fields = ["first_name", "last_name", "phone_number"]

    def clean_phone_number(self):
        return only_digits(self.cleaned_data.get("phone_number"))
