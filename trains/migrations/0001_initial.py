from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Train',
            fields=[
                ('train_number', models.PositiveIntegerField(primary_key=True, serialize=False)),
                ('train_name', models.CharField(max_length=255)),
                ('origin', models.CharField(max_length=255)),
                ('destination', models.CharField(max_length=255)),
                ('specification', models.CharField(blank=True, max_length=255, null=True)),
                ('seats_available', models.PositiveIntegerField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'trains',
                'ordering': ['train_number'],
                'indexes': [models.Index(fields=['origin', 'destination'], name='trains_route_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(('seats_available__gte', 0)), name='train_seats_available_non_negative')],
            },
        ),
    ]
