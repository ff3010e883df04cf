import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('farms', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Profile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.CharField(help_text='Identity provider subject (e.g. user_2abc...)', max_length=255, unique=True)),
                ('email', models.EmailField(blank=True, default='', max_length=255)),
                ('first_name', models.CharField(blank=True, default='', max_length=100)),
                ('last_name', models.CharField(blank=True, default='', max_length=100)),
                ('phone', models.CharField(blank=True, default='', max_length=30)),
                ('role', models.CharField(choices=[('user', 'Consumer'), ('farmer', 'Farmer'), ('admin', 'Administrator')], db_index=True, default='user', help_text="Marketplace role, mirrored in the identity provider's public metadata", max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('listing', models.ForeignKey(blank=True, help_text='Storefront owned by this farmer, linked when onboarding completes', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='owner_profiles', to='farms.listing')),
            ],
            options={
                'db_table': 'profiles',
                'ordering': ['-created_at'],
            },
        ),
    ]
