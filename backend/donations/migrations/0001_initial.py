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
            name='Donation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('latitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('longitude', models.DecimalField(blank=True, decimal_places=6, max_digits=9, null=True)),
                ('pickup_address', models.TextField(blank=True, default='')),
                ('food_item', models.CharField(max_length=200)),
                ('quantity', models.CharField(blank=True, default='', max_length=100)),
                ('food_type', models.CharField(blank=True, default='', max_length=100)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('offered', 'Offered to Beneficiary'), ('accepted_by_beneficiary', 'Accepted by Beneficiary'), ('assigned', 'Assigned to Volunteer'), ('delivered', 'Delivered'), ('expired', 'Expired')], default='pending', max_length=30)),
                ('delivery_status', models.CharField(choices=[('not_started', 'Not Started'), ('pending_volunteer_response', 'Pending Volunteer Response'), ('waiting_for_volunteer', 'Waiting for Volunteer'), ('accepted_by_volunteer', 'Accepted by Volunteer'), ('rejected_by_volunteer', 'Rejected by Volunteer'), ('completed', 'Completed')], default='not_started', max_length=30)),
                ('error', models.TextField(blank=True, default='')),
                ('offer_expiry', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('assigned_volunteer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_donations', to=settings.AUTH_USER_MODEL)),
                ('beneficiary', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='received_donations', to=settings.AUTH_USER_MODEL)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donations', to=settings.AUTH_USER_MODEL)),
                ('offered_to', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='donation_offers', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'donations',
                'ordering': ['-created_at'],
                'constraints': [models.CheckConstraint(condition=models.Q(models.Q(('offer_expiry__isnull', True), ('offered_to__isnull', True)), models.Q(('offer_expiry__isnull', False), ('offered_to__isnull', False)), _connector='OR'), name='donation_offer_fields_paired')],
            },
        ),
        migrations.CreateModel(
            name='DeliveryTask',
            fields=[
                ('donation', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, primary_key=True, related_name='delivery_task', serialize=False, to='donations.donation')),
                ('pickup_latitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('pickup_longitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('pickup_address', models.TextField(blank=True, default='')),
                ('dropoff_latitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('dropoff_longitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('dropoff_address', models.TextField(blank=True, default='')),
                ('donation_summary', models.JSONField(blank=True, default=dict)),
                ('candidate_queue', models.JSONField(blank=True, default=list)),
                ('rejected_volunteers', models.JSONField(blank=True, default=list)),
                ('current_candidate_index', models.IntegerField(default=-1)),
                ('status', models.CharField(choices=[('offered', 'Offered'), ('accepted', 'Accepted'), ('unassigned', 'Unassigned'), ('completed', 'Completed')], max_length=20)),
                ('offer_expiry', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('assignment_log', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('beneficiary', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='beneficiary_tasks', to=settings.AUTH_USER_MODEL)),
                ('current_volunteer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='current_tasks', to=settings.AUTH_USER_MODEL)),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='donor_tasks', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'delivery_tasks',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['status', 'offer_expiry'], name='task_status_expiry_idx')],
            },
        ),
        migrations.CreateModel(
            name='TransportRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('distance_km', models.FloatField()),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('completed', 'Completed')], default='pending', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('donation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transport_requests', to='donations.donation')),
                ('volunteer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='transport_requests', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'transport_requests',
                'constraints': [models.UniqueConstraint(fields=('donation', 'volunteer'), name='unique_donation_volunteer')],
            },
        ),
    ]
