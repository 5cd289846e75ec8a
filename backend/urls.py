"""URL configuration for the credential service."""
from django.contrib import admin
from django.urls import include, path

from .health import database_health_view, health_view, ledger_health_view

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health_view, name='health'),
    path('health/database/', database_health_view, name='health-database'),
    path('health/ledger/', ledger_health_view, name='health-ledger'),
    path('api/certificates/', include(('apps.certificates.urls', 'certificates'), namespace='certificates')),
    path('api/', include(('apps.security.urls', 'security'), namespace='security')),
]
