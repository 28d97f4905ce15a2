"""
URL configuration for the call service.

This module defines all URL patterns for the Django application, including:
- Admin interface
- Call, scheduling and conference API plus vendor webhooks
- AI analysis API
- Health check endpoint
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def _health_check_response(request):
    """
    Generate standardized health check response.

    Args:
        request: Django HTTP request object

    Returns:
        dict: Health check response data
    """
    return {
        'status': 'healthy',
        'service': 'dottie-calls',
        'version': '1.0.0',
        'trace_id': getattr(request, 'trace_id', None),
    }


urlpatterns = [
    path('admin/', admin.site.urls),

    # Health check endpoints (support both with and without trailing slash for load balancers)
    path('health/', lambda request: JsonResponse(_health_check_response(request)), name='health'),
    path('health', lambda request: JsonResponse(_health_check_response(request)), name='health-no-slash'),

    # API endpoints
    path('api/calls/', include('apps.calls.urls')),
    path('api/ai/', include('apps.ai.urls')),
]
