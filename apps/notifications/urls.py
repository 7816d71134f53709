from django.urls import path
from . import views

app_name = "notifications"

urlpatterns = [
    path('', views.notifications_list, name='notifications_list'),
    path('mark_read/<uuid:notification_id>/', views.mark_notification_read, name='mark_notification_read'),
    path('mark-all-read/', views.mark_all_read, name='mark_all_read'),
]
