from django.urls import path
from . import views

app_name = 'cashier'

urlpatterns = [
    path('current/', views.current_register, name='current'),
    path('open/', views.open_register, name='open'),
    path('close/', views.close_register, name='close'),
    path('history/', views.register_history, name='history'),
]
