from django.urls import path
from . import views

app_name = 'menu'

urlpatterns = [
    # Storefront
    path('restaurant/<uuid:restaurant_id>/', views.public_menu, name='public_menu'),
    path('products/<uuid:product_id>/', views.product_detail, name='product_detail'),

    # Back-office
    path('manage/categories/', views.category_list, name='category_list'),
    path('manage/categories/<uuid:category_id>/', views.category_detail, name='category_detail'),
    path('manage/products/', views.product_list, name='product_list'),
    path('manage/products/<uuid:product_id>/', views.product_manage, name='product_manage'),
    path('manage/products/<uuid:product_id>/toggle-availability/', views.toggle_product_availability, name='toggle_availability'),
]
