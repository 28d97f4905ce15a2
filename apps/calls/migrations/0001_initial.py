import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


CALL_STATUS_CHOICES = [
    ('scheduled', 'scheduled'),
    ('queued', 'queued'),
    ('initiated', 'initiated'),
    ('ringing', 'ringing'),
    ('in-progress', 'in-progress'),
    ('completed', 'completed'),
    ('failed', 'failed'),
    ('busy', 'busy'),
    ('no-answer', 'no-answer'),
    ('canceled', 'canceled'),
]
PROVIDER_CHOICES = [('twilio', 'Twilio'), ('vapi', 'Vapi')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Call',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('provider_call_id', models.CharField(max_length=128, unique=True)),
                ('from_number', models.CharField(max_length=32)),
                ('to_number', models.CharField(blank=True, default='', max_length=32)),
                ('direction', models.CharField(choices=[('inbound', 'inbound'), ('outbound', 'outbound')], max_length=16)),
                ('provider', models.CharField(choices=PROVIDER_CHOICES, max_length=16)),
                ('status', models.CharField(choices=CALL_STATUS_CHOICES, max_length=16)),
                ('duration', models.PositiveIntegerField(blank=True, null=True)),
                ('recording_url', models.URLField(blank=True, max_length=1024, null=True)),
                ('transcription', models.TextField(blank=True, null=True)),
                ('analytics', models.JSONField(blank=True, null=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='calls', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'calls',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', '-created_at'], name='calls_user_id_5a1c2e_idx'),
                    models.Index(fields=['status'], name='calls_status_8c1f0b_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='ScheduledCall',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('provider', models.CharField(choices=PROVIDER_CHOICES, max_length=16)),
                ('provider_schedule_id', models.CharField(blank=True, default='', max_length=128)),
                ('from_number', models.CharField(max_length=32)),
                ('to_number', models.CharField(max_length=32)),
                ('recording_enabled', models.BooleanField(default=False)),
                ('transcription_enabled', models.BooleanField(default=False)),
                ('callback_url', models.URLField(blank=True, max_length=1024, null=True)),
                ('scheduled_time', models.DateTimeField()),
                ('timezone', models.CharField(default='UTC', max_length=64)),
                ('recurrence', models.JSONField(blank=True, null=True)),
                ('status', models.CharField(choices=[('scheduled', 'scheduled'), ('canceled', 'canceled'), ('dispatched', 'dispatched')], default='scheduled', max_length=16)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='scheduled_calls', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'scheduled_calls',
                'ordering': ['scheduled_time'],
                'indexes': [
                    models.Index(fields=['status', 'scheduled_time'], name='scheduled_c_status_3d9e41_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Reminder',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('remind_at', models.DateTimeField()),
                ('minutes_before', models.PositiveIntegerField()),
                ('method', models.CharField(choices=[('sms', 'sms'), ('email', 'email'), ('push', 'push')], max_length=16)),
                ('status', models.CharField(choices=[('pending', 'pending'), ('sent', 'sent'), ('failed', 'failed')], default='pending', max_length=16)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('error', models.TextField(blank=True, null=True)),
                ('scheduled_call', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='reminder', to='calls.scheduledcall')),
            ],
            options={
                'db_table': 'call_reminders',
                'indexes': [
                    models.Index(fields=['status', 'remind_at'], name='call_remind_status_7b2a90_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Conference',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('name', models.CharField(max_length=255)),
                ('status', models.CharField(choices=[('scheduled', 'scheduled'), ('in-progress', 'in-progress'), ('completed', 'completed')], default='scheduled', max_length=16)),
                ('provider', models.CharField(choices=PROVIDER_CHOICES, max_length=16)),
                ('provider_conference_id', models.CharField(max_length=128, unique=True)),
                ('recording_enabled', models.BooleanField(default=False)),
                ('transcription_enabled', models.BooleanField(default=False)),
                ('max_participants', models.PositiveIntegerField(blank=True, null=True)),
                ('waiting_room', models.BooleanField(default=False)),
                ('mute_on_entry', models.BooleanField(default=False)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('ended_at', models.DateTimeField(blank=True, null=True)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='conferences', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'conferences',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='ConferenceParticipant',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('phone_number', models.CharField(max_length=32)),
                ('status', models.CharField(choices=[('invited', 'invited'), ('waiting', 'waiting'), ('connected', 'connected'), ('disconnected', 'disconnected')], default='invited', max_length=16)),
                ('muted', models.BooleanField(default=False)),
                ('joined_at', models.DateTimeField(blank=True, null=True)),
                ('left_at', models.DateTimeField(blank=True, null=True)),
                ('conference', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='participants', to='calls.conference')),
            ],
            options={
                'db_table': 'conference_participants',
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(fields=('conference', 'phone_number'), name='unique_conference_participant'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CallAnalysis',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('source', models.CharField(default='insights', max_length=32)),
                ('analysis', models.JSONField(default=dict)),
                ('insights', models.TextField(blank=True, default='')),
                ('call', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='analyses', to='calls.call')),
            ],
            options={
                'db_table': 'call_analyses',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='CallRecording',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('storage_key', models.CharField(max_length=512)),
                ('duration', models.PositiveIntegerField(default=0)),
                ('format', models.CharField(default='wav', max_length=16)),
                ('size', models.PositiveBigIntegerField(default=0)),
                ('bitrate', models.PositiveIntegerField(blank=True, null=True)),
                ('channels', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('sample_rate', models.PositiveIntegerField(blank=True, null=True)),
                ('quality_score', models.FloatField(blank=True, null=True)),
                ('quality_issues', models.JSONField(blank=True, default=list)),
                ('call', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='recording', to='calls.call')),
            ],
            options={
                'db_table': 'call_recordings',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='CallTranscript',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('text', models.TextField()),
                ('segments', models.JSONField(blank=True, default=list)),
                ('call', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='transcript', to='calls.call')),
            ],
            options={
                'db_table': 'call_transcripts',
            },
        ),
    ]
