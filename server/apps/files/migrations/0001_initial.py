import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='File',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('blob_ref', models.CharField(help_text='Opaque blob name inside the owner directory', max_length=32, unique=True)),
                ('original_name', models.CharField(help_text='Sanitized user-supplied filename', max_length=255)),
                ('size_bytes', models.BigIntegerField(help_text='Exact on-disk size in bytes')),
                ('mime_type', models.CharField(help_text='Declared content type, checked against the allow-list', max_length=255)),
                ('uploaded_at', models.DateTimeField(auto_now_add=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='files', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'File',
                'verbose_name_plural': 'Files',
                'ordering': ['-uploaded_at', '-id'],
                'indexes': [models.Index(fields=['user', '-uploaded_at'], name='files_user_recent_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(size_bytes__gte=0), name='files_size_non_negative')],
            },
        ),
        migrations.CreateModel(
            name='UserQuota',
            fields=[
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='quota', serialize=False, to=settings.AUTH_USER_MODEL)),
                ('quota_bytes', models.BigIntegerField(default=5368709120, help_text='Storage quota limit in bytes')),
                ('used_bytes', models.BigIntegerField(default=0, help_text='Currently used storage in bytes')),
                ('is_pro', models.BooleanField(default=False, help_text='Pro subscription (larger quota tier)')),
            ],
            options={
                'verbose_name': 'User Quota',
                'verbose_name_plural': 'User Quotas',
                'constraints': [models.CheckConstraint(condition=models.Q(quota_bytes__gt=0), name='quota_bytes_positive'), models.CheckConstraint(condition=models.Q(used_bytes__gte=0), name='used_bytes_non_negative')],
            },
        ),
    ]
