import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("families", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CalendarEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                ("start_at", models.DateTimeField(db_index=True)),
                ("end_at", models.DateTimeField()),
                (
                    "event_type",
                    models.CharField(
                        choices=[
                            ("custody", "Custody"),
                            ("pickup", "Pickup"),
                            ("dropoff", "Drop-off"),
                            ("school", "School"),
                            ("activity", "Activity"),
                            ("medical", "Medical"),
                            ("holiday", "Holiday"),
                            ("vacation", "Vacation"),
                            ("other", "Other"),
                        ],
                        default="other",
                        max_length=20,
                    ),
                ),
                (
                    "parent_role",
                    models.CharField(
                        choices=[("parent1", "Parent 1"), ("parent2", "Parent 2"), ("both", "Both")],
                        default="both",
                        max_length=10,
                    ),
                ),
                ("is_all_day", models.BooleanField(default=False)),
                ("location", models.CharField(blank=True, max_length=200)),
                ("target_user_ids", models.JSONField(blank=True, default=list)),
                ("reminder_minutes", models.PositiveIntegerField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "family",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="calendar_events",
                        to="families.family",
                    ),
                ),
            ],
            options={
                "ordering": ["start_at"],
                "indexes": [
                    models.Index(fields=["family", "start_at"], name="event_family_start_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CustodySchedule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(blank=True, max_length=100)),
                (
                    "pattern",
                    models.CharField(
                        choices=[
                            ("weekly", "Weekly"),
                            ("biweekly", "Every two weeks"),
                            ("week_on_week_off", "Week on / week off"),
                            ("custom", "Custom"),
                        ],
                        default="weekly",
                        max_length=20,
                    ),
                ),
                ("start_date", models.DateField(blank=True, null=True)),
                ("end_date", models.DateField(blank=True, null=True)),
                ("parent1_days", models.JSONField(blank=True, default=list)),
                ("parent2_days", models.JSONField(blank=True, default=list)),
                ("is_active", models.BooleanField(default=False)),
                ("pending_approval", models.JSONField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "family",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="custody_schedule",
                        to="families.family",
                    ),
                ),
            ],
        ),
    ]
