"""
AI analysis routes.
"""
from django.urls import path
from . import views

app_name = 'ai'

urlpatterns = [
    path('calls/<str:call_id>/insights/', views.CallInsightsView.as_view(), name='call-insights'),
    path('trends/', views.TrendsView.as_view(), name='trends'),
    path('customer-profile/', views.CustomerProfileView.as_view(), name='customer-profile'),
    path('voice-analysis/', views.VoiceAnalysisView.as_view(), name='voice-analysis'),
]
