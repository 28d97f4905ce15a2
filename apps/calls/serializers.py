"""
Serializers for call API responses.
"""
from rest_framework import serializers

from .models import (
    Call,
    CallRecording,
    Conference,
    ConferenceParticipant,
    Reminder,
    ScheduledCall,
)


class CallSerializer(serializers.ModelSerializer):
    call_id = serializers.CharField(source='provider_call_id', read_only=True)

    class Meta:
        model = Call
        fields = [
            'id', 'call_id', 'from_number', 'to_number', 'direction', 'provider',
            'status', 'duration', 'recording_url', 'transcription', 'analytics',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ReminderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Reminder
        fields = ['remind_at', 'minutes_before', 'method', 'status', 'sent_at']
        read_only_fields = fields


class ScheduledCallSerializer(serializers.ModelSerializer):
    """Scheduled call with its reminder, if one was requested."""
    reminder = serializers.SerializerMethodField()

    class Meta:
        model = ScheduledCall
        fields = [
            'id', 'provider', 'provider_schedule_id', 'from_number', 'to_number',
            'recording_enabled', 'transcription_enabled', 'callback_url',
            'scheduled_time', 'timezone', 'recurrence', 'status', 'reminder',
            'created_at',
        ]
        read_only_fields = fields

    def get_reminder(self, obj):
        try:
            return ReminderSerializer(obj.reminder).data
        except Reminder.DoesNotExist:
            return None


class ConferenceParticipantSerializer(serializers.ModelSerializer):
    class Meta:
        model = ConferenceParticipant
        fields = ['phone_number', 'status', 'muted', 'joined_at', 'left_at']
        read_only_fields = fields


class ConferenceSerializer(serializers.ModelSerializer):
    participants = ConferenceParticipantSerializer(many=True, read_only=True)

    class Meta:
        model = Conference
        fields = [
            'id', 'name', 'status', 'provider', 'provider_conference_id',
            'recording_enabled', 'transcription_enabled', 'max_participants',
            'waiting_room', 'mute_on_entry', 'started_at', 'ended_at',
            'participants', 'created_at',
        ]
        read_only_fields = fields


class CallRecordingSerializer(serializers.ModelSerializer):
    call_id = serializers.CharField(source='call.provider_call_id', read_only=True)

    class Meta:
        model = CallRecording
        fields = [
            'call_id', 'duration', 'format', 'size', 'bitrate', 'channels',
            'sample_rate', 'quality_score', 'quality_issues', 'created_at',
        ]
        read_only_fields = fields
