from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("security", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="logentry",
            name="certificate_number",
            field=models.CharField(blank=True, db_index=True, max_length=32),
        ),
    ]
