# Generated manually
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('branches', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Staff',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('first_name', models.CharField(max_length=100)),
                ('last_name', models.CharField(max_length=100)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('specialization', models.CharField(blank=True, max_length=200)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('on_leave', 'On Leave'), ('terminated', 'Terminated')], default='active', max_length=20)),
                ('hire_date', models.DateField(blank=True, null=True)),
                ('dbs_status', models.CharField(choices=[('not_started', 'Not Started'), ('pending', 'Pending'), ('clear', 'Clear'), ('flagged', 'Flagged'), ('expired', 'Expired')], default='not_started', max_length=20)),
                ('dbs_check_date', models.DateField(blank=True, null=True)),
                ('late_arrival_count', models.PositiveIntegerField(default=0)),
                ('missed_booking_count', models.PositiveIntegerField(default=0)),
                ('punctuality_score', models.PositiveSmallIntegerField(default=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('branch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='staff', to='branches.branch')),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='staff_profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'staff',
                'ordering': ['last_name', 'first_name'],
                'verbose_name_plural': 'staff',
            },
        ),
        migrations.CreateModel(
            name='TrainingCourse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=200)),
                ('category', models.CharField(choices=[('core', 'Core'), ('clinical', 'Clinical'), ('specialised', 'Specialised'), ('compliance', 'Compliance'), ('other', 'Other')], default='core', max_length=20)),
                ('description', models.TextField(blank=True)),
                ('is_mandatory', models.BooleanField(default=False)),
                ('valid_for_months', models.PositiveSmallIntegerField(blank=True, help_text='Months a completion stays valid; empty means it never expires', null=True)),
                ('required_score', models.PositiveSmallIntegerField(default=0)),
                ('max_score', models.PositiveSmallIntegerField(default=100)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive')], default='active', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('branch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='training_courses', to='branches.branch')),
            ],
            options={
                'db_table': 'training_courses',
                'ordering': ['title'],
                'constraints': [
                    models.UniqueConstraint(fields=('branch', 'title'), name='uniq_course_title_per_branch'),
                ],
            },
        ),
        migrations.CreateModel(
            name='TrainingRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('not-started', 'Not Started'), ('in-progress', 'In Progress'), ('completed', 'Completed'), ('expired', 'Expired'), ('paused', 'Paused'), ('under-review', 'Under Review'), ('failed', 'Failed'), ('renewal-required', 'Renewal Required')], default='not-started', max_length=20)),
                ('assigned_date', models.DateField(default=django.utils.timezone.localdate)),
                ('completion_date', models.DateField(blank=True, null=True)),
                ('expiry_date', models.DateField(blank=True, null=True)),
                ('score', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('progress_percentage', models.PositiveSmallIntegerField(default=0)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('branch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='training_records', to='branches.branch')),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='records', to='staff.trainingcourse')),
                ('staff', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='training_records', to='staff.staff')),
            ],
            options={
                'db_table': 'staff_training_records',
                'ordering': ['-assigned_date'],
                'constraints': [
                    models.UniqueConstraint(fields=('staff', 'course'), name='uniq_training_record_per_course'),
                ],
            },
        ),
        migrations.CreateModel(
            name='StaffDocument',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('document_type', models.CharField(max_length=100)),
                ('file', models.FileField(blank=True, null=True, upload_to='staff_documents/')),
                ('expiry_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('staff', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='documents', to='staff.staff')),
            ],
            options={
                'db_table': 'staff_documents',
                'ordering': ['document_type'],
            },
        ),
    ]
