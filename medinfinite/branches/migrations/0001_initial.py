# Generated manually
import django.db.models.deletion
import medinfinite.branches.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Organization',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('address', models.TextField(blank=True)),
                ('contact_phone', models.CharField(blank=True, max_length=20)),
                ('contact_email', models.EmailField(blank=True, max_length=254)),
                ('website', models.URLField(blank=True)),
                ('logo', models.ImageField(blank=True, null=True, upload_to='organization_logos/')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'organizations',
            },
        ),
        migrations.CreateModel(
            name='Branch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('branch_type', models.CharField(choices=[('home_care', 'Home Care'), ('residential', 'Residential'), ('supported_living', 'Supported Living'), ('nursing', 'Nursing'), ('other', 'Other')], default='home_care', max_length=30)),
                ('country', models.CharField(default='United Kingdom', max_length=100)),
                ('currency', models.CharField(default='GBP', max_length=10)),
                ('regulatory', models.CharField(blank=True, help_text='Regulator the branch reports to (e.g., CQC)', max_length=100)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('suspended', 'Suspended')], default='active', max_length=20)),
                ('address', models.TextField(blank=True)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('operating_hours', models.CharField(blank=True, max_length=200)),
                ('established_date', models.DateField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('organization', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='branches', to='branches.organization')),
            ],
            options={
                'db_table': 'branches',
                'ordering': ['name'],
                'constraints': [
                    models.UniqueConstraint(fields=('organization', 'name'), name='uniq_branch_name_per_org'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AdminBranch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('permissions', models.JSONField(blank=True, default=medinfinite.branches.models.default_admin_permissions)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('admin', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='admin_branches', to=settings.AUTH_USER_MODEL)),
                ('branch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='admin_links', to='branches.branch')),
            ],
            options={
                'db_table': 'admin_branches',
                'constraints': [
                    models.UniqueConstraint(fields=('admin', 'branch'), name='uniq_admin_branch'),
                ],
            },
        ),
    ]
