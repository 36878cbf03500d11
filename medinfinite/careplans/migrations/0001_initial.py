# Generated manually
import django.db.models.deletion
import django.utils.timezone
import medinfinite.careplans.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('clients', '0001_initial'),
        ('staff', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='CarePlan',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('display_id', models.CharField(default=medinfinite.careplans.models.generate_display_id, editable=False, max_length=30, unique=True)),
                ('title', models.CharField(max_length=255)),
                ('provider_name', models.CharField(blank=True, max_length=255)),
                ('start_date', models.DateField(blank=True, null=True)),
                ('end_date', models.DateField(blank=True, null=True)),
                ('review_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(choices=[('Draft', 'Draft'), ('Under Review', 'Under Review'), ('Active', 'Active'), ('On Hold', 'On Hold'), ('Completed', 'Completed'), ('Archived', 'Archived')], default='Draft', max_length=20)),
                ('approval_status', models.CharField(choices=[('not_submitted', 'Not Submitted'), ('pending_approval', 'Pending Approval'), ('pending_client_approval', 'Pending Client Approval'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='not_submitted', max_length=30)),
                ('priority', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High')], default='medium', max_length=10)),
                ('care_plan_type', models.CharField(choices=[('standard', 'Standard'), ('child', 'Child')], default='standard', max_length=20)),
                ('wizard_data', models.JSONField(blank=True, default=dict)),
                ('completion_percentage', models.PositiveSmallIntegerField(default=0)),
                ('last_step_completed', models.PositiveSmallIntegerField(default=0)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('client_signature', models.TextField(blank=True)),
                ('client_acknowledged_at', models.DateTimeField(blank=True, null=True)),
                ('last_autosaved_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='approved_care_plans', to=settings.AUTH_USER_MODEL)),
                ('client', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='care_plans', to='clients.client')),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='created_care_plans', to=settings.AUTH_USER_MODEL)),
                ('staff', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='care_plans', to='staff.staff')),
            ],
            options={
                'db_table': 'client_care_plans',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['client', 'status'], name='care_plans_client_status_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CarePlanStatusHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('from_status', models.CharField(blank=True, max_length=20)),
                ('to_status', models.CharField(max_length=20)),
                ('reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('care_plan', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='status_history', to='careplans.careplan')),
                ('changed_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'care_plan_status_history',
                'ordering': ['-created_at'],
                'verbose_name_plural': 'care plan status history',
            },
        ),
        migrations.CreateModel(
            name='Goal',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('description', models.TextField()),
                ('status', models.CharField(choices=[('Draft', 'Draft'), ('In Progress', 'In Progress'), ('Active', 'Active'), ('On Hold', 'On Hold'), ('Under Review', 'Under Review'), ('Completed', 'Completed'), ('Archived', 'Archived')], default='In Progress', max_length=20)),
                ('progress', models.PositiveSmallIntegerField(default=0)),
                ('target_date', models.DateField(blank=True, null=True)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('care_plan', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='goals', to='careplans.careplan')),
            ],
            options={
                'db_table': 'care_plan_goals',
                'ordering': ['created_at'],
            },
        ),
        migrations.CreateModel(
            name='Activity',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('frequency', models.CharField(blank=True, max_length=100)),
                ('status', models.CharField(choices=[('active', 'Active'), ('paused', 'Paused'), ('completed', 'Completed')], default='active', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('care_plan', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='activities', to='careplans.careplan')),
            ],
            options={
                'db_table': 'care_plan_activities',
                'ordering': ['created_at'],
                'verbose_name_plural': 'activities',
            },
        ),
        migrations.CreateModel(
            name='Medication',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('dosage', models.CharField(max_length=100)),
                ('frequency', models.CharField(max_length=100)),
                ('route', models.CharField(blank=True, max_length=50)),
                ('instructions', models.TextField(blank=True)),
                ('start_date', models.DateField(blank=True, null=True)),
                ('end_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('paused', 'Paused'), ('discontinued', 'Discontinued')], default='active', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('care_plan', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='medications', to='careplans.careplan')),
            ],
            options={
                'db_table': 'client_medications',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='MedicationAdministration',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('administered_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('status', models.CharField(choices=[('given', 'Given'), ('refused', 'Refused'), ('missed', 'Missed'), ('not_given', 'Not Given')], max_length=20)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('administered_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='medication_administrations', to=settings.AUTH_USER_MODEL)),
                ('medication', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='administrations', to='careplans.medication')),
            ],
            options={
                'db_table': 'medication_administration_records',
                'ordering': ['-administered_at'],
                'indexes': [
                    models.Index(fields=['medication', 'administered_at'], name='mar_medication_time_idx'),
                ],
            },
        ),
    ]
