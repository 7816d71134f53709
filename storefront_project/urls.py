from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

urlpatterns = [
    # Admin interface
    path('admin/', admin.site.urls),

    # Authentication URLs
    path('auth/', include('apps.authentication.urls')),

    # Storefront and back-office
    path('restaurants/', include('apps.restaurants.urls')),
    path('menu/', include('apps.menu.urls')),
    path('orders/', include('apps.orders.urls')),
    path('cashier/', include('apps.cashier.urls')),
    path('notifications/', include('apps.notifications.urls')),
    path('reports/', include('apps.reports.urls')),

    # API URLs
    path('api/payments/', include('apps.payments.api_urls')),
]

# Serve media files during development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)

# Admin site configuration
admin.site.site_header = "Restaurant Storefront"
admin.site.site_title = "Storefront Admin"
admin.site.index_title = "Restaurants, menus and orders"
