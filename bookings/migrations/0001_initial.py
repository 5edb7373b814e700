import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('trains', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Reservation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('berth_type', models.CharField(choices=[('LOWER', 'Lower'), ('UPPER', 'Upper'), ('MIDDLE', 'Middle'), ('SIDE', 'Side')], max_length=10)),
                ('meals_required', models.BooleanField(default=False)),
                ('travel_date', models.DateField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('train', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reservations', to='trains.train')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='reservations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'reservations',
                'ordering': ['travel_date', 'id'],
                'indexes': [
                    models.Index(fields=['user', 'travel_date'], name='reservations_user_date_idx'),
                    models.Index(fields=['user', 'train', 'travel_date'], name='reservations_ticket_idx'),
                ],
            },
        ),
    ]
