from django.urls import path
from . import api_views

app_name = 'payments'

urlpatterns = [
    path('orders/<uuid:order_id>/preference/', api_views.create_preference, name='create_preference'),
    path('orders/<uuid:order_id>/card/', api_views.process_payment, name='process_payment'),
    path('orders/<uuid:order_id>/confirm/', api_views.confirm_payment, name='confirm_payment'),
    path('webhook/<uuid:restaurant_id>/', api_views.webhook, name='webhook'),
    path('credentials/', api_views.check_credentials, name='check_credentials'),
    path('credentials/save/', api_views.save_credentials, name='save_credentials'),
    path('methods/', api_views.payment_methods, name='payment_methods'),
]
