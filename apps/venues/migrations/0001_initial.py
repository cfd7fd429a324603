import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Venue',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
                ('updated_at', models.DateTimeField(auto_now=True, db_index=True, help_text='Timestamp when the record was last updated')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('name', models.CharField(help_text='Venue name', max_length=255)),
                ('slug', models.SlugField(help_text='URL-friendly identifier', max_length=100, unique=True)),
                ('description', models.TextField(blank=True, help_text='Public description of the venue')),
                ('contact_email', models.EmailField(blank=True, help_text='Contact email', max_length=254)),
                ('contact_phone', models.CharField(blank=True, help_text='Contact phone number', max_length=32)),
                ('time_zone', models.CharField(default='UTC', help_text='IANA time zone used for scheduling', max_length=64)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Whether the venue account is active')),
            ],
            options={
                'db_table': 'venues',
                'ordering': ['-created_at'],
            },
        ),
    ]
