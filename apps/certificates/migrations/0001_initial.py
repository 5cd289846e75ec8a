from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("courses", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CertificateSequence",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("year", models.PositiveIntegerField(unique=True)),
                ("last_value", models.PositiveIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name="Certificate",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("certificate_number", models.CharField(max_length=32, unique=True)),
                ("completion_date", models.DateField()),
                ("recipient_name", models.CharField(max_length=255)),
                ("course_title", models.CharField(max_length=255)),
                ("recipient_account_id", models.CharField(max_length=64)),
                ("collection_id", models.CharField(max_length=64)),
                ("serial_number", models.PositiveBigIntegerField()),
                ("image_file_id", models.CharField(max_length=64)),
                ("metadata_file_id", models.CharField(max_length=64)),
                ("ipfs_image_hash", models.CharField(blank=True, max_length=128)),
                ("ipfs_image_url", models.CharField(blank=True, max_length=255)),
                ("ipfs_metadata_hash", models.CharField(blank=True, max_length=128)),
                ("ipfs_metadata_url", models.CharField(blank=True, max_length=255)),
                ("svg_content", models.TextField()),
                ("onchain_metadata", models.CharField(max_length=100)),
                ("platform_signature", models.CharField(max_length=64)),
                ("mint_transaction_id", models.CharField(max_length=128)),
                ("transfer_transaction_id", models.CharField(blank=True, max_length=128)),
                (
                    "status",
                    models.CharField(
                        choices=[("minted", "Minted"), ("transferred", "Transferred")],
                        db_index=True,
                        default="minted",
                        max_length=16,
                    ),
                ),
                ("minted_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("transferred_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "course",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="certificates",
                        to="courses.course",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="certificates",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-minted_at", "-pk"),
                "constraints": [
                    models.UniqueConstraint(fields=("user", "course"), name="unique_certificate_per_course"),
                    models.UniqueConstraint(fields=("collection_id", "serial_number"), name="unique_certificate_token"),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                models.Q(("status", "transferred"), ("transferred_at__isnull", False)),
                                models.Q(("transfer_transaction_id", ""), _negated=True),
                                models.Q(("mint_transaction_id", ""), _negated=True),
                            ),
                            models.Q(("status", "minted"), ("transfer_transaction_id", "")),
                            _connector="OR",
                        ),
                        name="certificate_status_matches_transfer",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CertificateIssuance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("certificate_number", models.CharField(max_length=32, unique=True)),
                (
                    "stage",
                    models.CharField(
                        choices=[
                            ("eligible", "Eligible"),
                            ("rendered", "Rendered"),
                            ("published", "Published"),
                            ("minting", "Mint submitted"),
                            ("minted", "Minted"),
                            ("transferred", "Transferred"),
                            ("stuck", "Awaiting association"),
                            ("failed", "Failed before mint"),
                        ],
                        db_index=True,
                        default="eligible",
                        max_length=16,
                    ),
                ),
                ("last_error", models.TextField(blank=True)),
                ("attempts", models.PositiveIntegerField(default=1)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "certificate",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="issuance",
                        to="certificates.certificate",
                    ),
                ),
                (
                    "course",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="certificate_issuances",
                        to="courses.course",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="certificate_issuances",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ("-updated_at", "-pk"),
                "constraints": [
                    models.UniqueConstraint(fields=("user", "course"), name="unique_issuance_per_course"),
                ],
            },
        ),
    ]
