from django.urls import path
from . import views

app_name = 'reports'

urlpatterns = [
    path('dashboard/', views.dashboard_stats, name='dashboard_stats'),
    path('sales.csv', views.export_sales_csv, name='export_sales_csv'),
]
