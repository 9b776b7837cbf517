import django.core.validators
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "name",
                    models.CharField(
                        help_text="Display name (2-100 characters).",
                        max_length=100,
                        validators=[django.core.validators.MinLengthValidator(2, message="Name must be 2-100 characters long.")],
                    ),
                ),
                (
                    "email",
                    models.EmailField(
                        error_messages={"invalid": "Email is not valid.", "unique": "Email already exists."},
                        help_text="Unique email address (stored lowercase).",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "age",
                    models.IntegerField(
                        blank=True,
                        help_text="Optional age (1-150).",
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(1, message="Age must be at least 1."),
                            django.core.validators.MaxValueValidator(150, message="Age must not exceed 150."),
                        ],
                    ),
                ),
                (
                    "photo",
                    models.CharField(
                        blank=True,
                        help_text="Photo reference (/uploads/..., /user-photos/... or a legacy S3 URL).",
                        max_length=500,
                        null=True,
                    ),
                ),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, editable=False)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
            ],
            options={
                "verbose_name": "User",
                "verbose_name_plural": "Users",
                "ordering": ["id"],
            },
        ),
    ]
