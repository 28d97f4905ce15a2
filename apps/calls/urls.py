"""
Call routes.
"""
from django.urls import path
from . import views

app_name = 'calls'

urlpatterns = [
    path('', views.CallListView.as_view(), name='list'),
    path('analytics/', views.CallAnalyticsView.as_view(), name='analytics'),
    path('recordings/', views.RecordingListView.as_view(), name='recordings'),

    # Scheduling
    path('scheduled/', views.ScheduledCallListView.as_view(), name='scheduled-list'),
    path('scheduled/<uuid:scheduled_call_id>/cancel/', views.ScheduledCallCancelView.as_view(), name='scheduled-cancel'),

    # Conferences
    path('conferences/', views.ConferenceListView.as_view(), name='conference-list'),
    path('conferences/<uuid:conference_id>/', views.ConferenceDetailView.as_view(), name='conference-detail'),
    path('conferences/<uuid:conference_id>/end/', views.ConferenceEndView.as_view(), name='conference-end'),
    path('conferences/<uuid:conference_id>/participants/', views.ConferenceParticipantsView.as_view(), name='conference-participants'),
    path('conferences/<uuid:conference_id>/participants/<str:phone_number>/', views.ConferenceParticipantDetailView.as_view(), name='conference-participant'),
    path('conferences/<uuid:conference_id>/participants/<str:phone_number>/mute/', views.ConferenceParticipantMuteView.as_view(), name='conference-participant-mute'),

    # Vendor webhooks
    path('webhooks/twilio/', views.TwilioWebhookView.as_view(), name='twilio-webhook'),
    path('webhooks/vapi/', views.VapiWebhookView.as_view(), name='vapi-webhook'),

    # Single call; keep last so the fixed prefixes above win
    path('<str:call_id>/', views.CallDetailView.as_view(), name='detail'),
    path('<str:call_id>/status/', views.CallStatusView.as_view(), name='status'),
    path('<str:call_id>/analytics/', views.CallProviderAnalyticsView.as_view(), name='call-analytics'),
    path('<str:call_id>/assistant/', views.AssistantConfigView.as_view(), name='assistant'),
    path('<str:call_id>/recording/', views.RecordingView.as_view(), name='recording'),
    path('<str:call_id>/recording/analyze/', views.RecordingAnalysisView.as_view(), name='recording-analyze'),
    path('<str:call_id>/transcript/', views.TranscriptView.as_view(), name='transcript'),
]
