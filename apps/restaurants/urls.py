from django.urls import path
from . import views

app_name = 'restaurants'

urlpatterns = [
    # Storefront
    path('', views.restaurant_list, name='restaurant_list'),
    path('<uuid:restaurant_id>/', views.restaurant_detail, name='restaurant_detail'),
    path('<uuid:restaurant_id>/delivery-quote/', views.delivery_quote, name='delivery_quote'),

    # Back-office
    path('my-store/', views.my_store, name='my_store'),
    path('my-store/hours/', views.business_hours, name='business_hours'),
    path('my-store/delivery-zones/', views.delivery_zones, name='delivery_zones'),
]
