import uuid

import django.db.models.deletion
import django.db.models.functions.text
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("description", models.TextField()),
                ("location", models.CharField(max_length=255)),
                ("date", models.DateTimeField()),
                ("capacity", models.PositiveIntegerField()),
                ("regions", models.JSONField(blank=True, default=list)),
                ("campuses", models.JSONField(blank=True, default=list)),
                ("image_url", models.URLField(blank=True, max_length=500, null=True)),
                ("created_by", models.CharField(max_length=64)),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["date"],
                "indexes": [
                    models.Index(fields=["date"], name="event_date_idx"),
                    models.Index(fields=["created_by"], name="event_created_by_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Membership",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "role",
                    models.CharField(
                        choices=[("Admin", "Admin"), ("Leader", "Leader"), ("Member", "Member")],
                        default="Member",
                        max_length=16,
                    ),
                ),
                ("region", models.CharField(blank=True, max_length=100)),
                ("campus", models.CharField(blank=True, max_length=100)),
                (
                    "leader",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="members",
                        to="events.membership",
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="membership",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["role"], name="membership_role_idx")],
            },
        ),
        migrations.CreateModel(
            name="MemberRegistration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("member_id", models.CharField(max_length=64)),
                (
                    "status",
                    models.CharField(
                        choices=[("Confirmed", "Confirmed"), ("Waitlisted", "Waitlisted"), ("Cancelled", "Cancelled")],
                        max_length=16,
                    ),
                ),
                ("registration_date", models.DateTimeField()),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registered_members",
                        to="events.event",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(fields=("event", "member_id"), name="unique_member_per_event"),
                ],
            },
        ),
        migrations.CreateModel(
            name="GuestRegistration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(max_length=254)),
                ("phone", models.CharField(blank=True, max_length=32)),
                (
                    "status",
                    models.CharField(
                        choices=[("Confirmed", "Confirmed"), ("Waitlisted", "Waitlisted"), ("Cancelled", "Cancelled")],
                        max_length=16,
                    ),
                ),
                ("registration_date", models.DateTimeField()),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="guest_registrations",
                        to="events.event",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.UniqueConstraint(
                        django.db.models.functions.text.Lower("email"),
                        models.F("event"),
                        name="unique_guest_email_per_event",
                    ),
                ],
            },
        ),
    ]
