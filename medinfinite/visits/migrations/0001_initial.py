# Generated manually
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('bookings', '0001_initial'),
        ('branches', '0001_initial'),
        ('clients', '0001_initial'),
        ('staff', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='VisitRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('visit_start_time', models.DateTimeField(default=django.utils.timezone.now)),
                ('visit_end_time', models.DateTimeField(blank=True, null=True)),
                ('actual_duration_minutes', models.PositiveIntegerField(blank=True, null=True)),
                ('status', models.CharField(choices=[('in_progress', 'In Progress'), ('completed', 'Completed'), ('abandoned', 'Abandoned')], default='in_progress', max_length=20)),
                ('visit_notes', models.TextField(blank=True)),
                ('visit_summary', models.TextField(blank=True)),
                ('tasks', models.JSONField(blank=True, default=list)),
                ('client_signature', models.TextField(blank=True)),
                ('staff_signature', models.TextField(blank=True)),
                ('completion_percentage', models.PositiveSmallIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('booking', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='visit_record', to='bookings.booking')),
                ('branch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='visit_records', to='branches.branch')),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='visit_records', to='clients.client')),
                ('staff', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='visit_records', to='staff.staff')),
            ],
            options={
                'db_table': 'visit_records',
                'ordering': ['-visit_start_time'],
            },
        ),
        migrations.CreateModel(
            name='News2Observation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('recorded_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('respiratory_rate', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('oxygen_saturation', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('supplemental_oxygen', models.BooleanField(default=False)),
                ('systolic_bp', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('diastolic_bp', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('pulse_rate', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('consciousness_level', models.CharField(choices=[('A', 'Alert'), ('C', 'New Confusion'), ('V', 'Voice'), ('P', 'Pain'), ('U', 'Unresponsive')], default='A', max_length=1)),
                ('temperature', models.DecimalField(blank=True, decimal_places=1, max_digits=4, null=True)),
                ('respiratory_rate_score', models.PositiveSmallIntegerField(default=0)),
                ('oxygen_saturation_score', models.PositiveSmallIntegerField(default=0)),
                ('supplemental_oxygen_score', models.PositiveSmallIntegerField(default=0)),
                ('systolic_bp_score', models.PositiveSmallIntegerField(default=0)),
                ('pulse_rate_score', models.PositiveSmallIntegerField(default=0)),
                ('consciousness_level_score', models.PositiveSmallIntegerField(default=0)),
                ('temperature_score', models.PositiveSmallIntegerField(default=0)),
                ('total_score', models.PositiveSmallIntegerField(default=0)),
                ('risk_level', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High')], default='low', max_length=10)),
                ('clinical_notes', models.TextField(blank=True)),
                ('ai_recommendations', models.JSONField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='news2_observations', to='clients.client')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='news2_observations', to=settings.AUTH_USER_MODEL)),
                ('visit_record', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='news2_observations', to='visits.visitrecord')),
            ],
            options={
                'db_table': 'news2_observations',
                'ordering': ['-recorded_at'],
                'indexes': [
                    models.Index(fields=['client', 'recorded_at'], name='news2_client_recorded_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='EventLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=255)),
                ('event_type', models.CharField(max_length=50)),
                ('category', models.CharField(blank=True, max_length=50)),
                ('severity', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical')], default='low', max_length=10)),
                ('status', models.CharField(choices=[('open', 'Open'), ('in_progress', 'In Progress'), ('resolved', 'Resolved'), ('closed', 'Closed')], default='open', max_length=20)),
                ('reporter', models.CharField(blank=True, max_length=200)),
                ('location', models.CharField(blank=True, max_length=255)),
                ('description', models.TextField(blank=True)),
                ('event_date', models.DateTimeField(default=django.utils.timezone.now)),
                ('risk_level', models.CharField(blank=True, max_length=20)),
                ('action_required', models.BooleanField(default=False)),
                ('follow_up_date', models.DateField(blank=True, null=True)),
                ('body_map_points', models.JSONField(blank=True, default=list)),
                ('body_map_front_image', models.ImageField(blank=True, null=True, upload_to='body_maps/')),
                ('body_map_back_image', models.ImageField(blank=True, null=True, upload_to='body_maps/')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('branch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='event_logs', to='branches.branch')),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='event_logs', to='clients.client')),
                ('recorded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='event_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'client_events_logs',
                'ordering': ['-event_date'],
                'indexes': [
                    models.Index(fields=['branch', 'event_date'], name='events_branch_date_idx'),
                ],
            },
        ),
    ]
