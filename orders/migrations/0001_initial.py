import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('farms', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_id', models.CharField(db_index=True, help_text='Identity provider subject of the purchaser', max_length=255)),
                ('items', models.JSONField(default=list, help_text='Snapshot: [{productId, productName, price, quantity, unit, imageUrl, lineTotal}]')),
                ('total_price', models.DecimalField(decimal_places=2, max_digits=10)),
                ('delivery_mode', models.CharField(choices=[('pickup', 'Pickup'), ('delivery', 'Delivery')], max_length=20)),
                ('delivery_day', models.CharField(max_length=100)),
                ('delivery_address', models.JSONField(blank=True, null=True)),
                ('customer_notes', models.TextField(blank=True, default='')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('ready', 'Ready'), ('delivered', 'Delivered'), ('cancelled', 'Cancelled')], db_index=True, default='pending', max_length=20)),
                ('payment_status', models.CharField(choices=[('unpaid', 'Unpaid'), ('paid', 'Paid'), ('refunded', 'Refunded')], default='unpaid', max_length=20)),
                ('farmer_notes', models.TextField(blank=True, default='')),
                ('cancelled_reason', models.TextField(blank=True, default='')),
                ('cancelled_by', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('farm', models.ForeignKey(db_column='farm_id', on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='farms.listing')),
            ],
            options={
                'db_table': 'orders',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['farm', 'status'], name='orders_farm_status_idx')],
            },
        ),
    ]
