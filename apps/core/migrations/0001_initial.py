import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="ActiveSession",
            fields=[
                ("session_id", models.CharField(max_length=32, primary_key=True, serialize=False)),
                ("guild_id", models.CharField(max_length=32)),
                ("channel_id", models.CharField(max_length=32)),
                ("message_id", models.CharField(max_length=32)),
                ("game_date", models.DateField(db_index=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("last_update", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="GameResult",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("guild_id", models.CharField(max_length=32)),
                ("user_id", models.CharField(max_length=32)),
                ("username", models.CharField(max_length=255)),
                ("avatar", models.CharField(max_length=255, null=True)),
                ("game_date", models.DateField()),
                ("score", models.IntegerField()),
                ("mistakes", models.IntegerField()),
                ("guess_history", models.JSONField(default=list)),
                ("completed_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("guild_id", "user_id", "game_date"), name="unique_player_game")
                ],
                "indexes": [models.Index(fields=["guild_id", "game_date"], name="game_result_guild_date")],
            },
        ),
        migrations.CreateModel(
            name="MessageSession",
            fields=[
                ("session_id", models.CharField(max_length=32, primary_key=True, serialize=False)),
                ("guild_id", models.CharField(max_length=32)),
                ("channel_id", models.CharField(max_length=32)),
                ("game_date", models.DateField()),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("last_update", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
            ],
            options={
                "indexes": [models.Index(fields=["channel_id", "game_date"], name="message_session_channel_date")],
            },
        ),
        migrations.CreateModel(
            name="PendingRecap",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("channel_id", models.CharField(max_length=32)),
                ("guild_id", models.CharField(max_length=32)),
                ("game_date", models.DateField()),
                ("recap_posted", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("posted_at", models.DateTimeField(null=True)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("channel_id", "game_date"), name="unique_channel_recap")
                ],
                "indexes": [models.Index(fields=["recap_posted", "game_date"], name="pending_recap_posted_date")],
            },
        ),
        migrations.CreateModel(
            name="PostedNotification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("guild_id", models.CharField(max_length=32)),
                ("user_id", models.CharField(max_length=32)),
                ("game_date", models.DateField()),
                ("posted_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("guild_id", "user_id", "game_date"), name="unique_notification")
                ],
            },
        ),
        migrations.CreateModel(
            name="UserSessionMapping",
            fields=[
                ("user_session_id", models.CharField(max_length=128, primary_key=True, serialize=False)),
                ("message_session_id", models.CharField(db_index=True, max_length=32)),
            ],
        ),
        migrations.CreateModel(
            name="ActiveSessionPlayer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(max_length=32)),
                ("username", models.CharField(max_length=255)),
                ("avatar_url", models.TextField(null=True)),
                ("guess_history", models.JSONField(default=list)),
                ("last_guess_count", models.IntegerField(default=0)),
                ("joined_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="players",
                        to="core.activesession",
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("session", "user_id"), name="unique_active_session_player")
                ],
            },
        ),
        migrations.CreateModel(
            name="SessionPlayer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("user_id", models.CharField(max_length=32)),
                ("username", models.CharField(max_length=255)),
                ("avatar_url", models.TextField(null=True)),
                ("guess_history", models.JSONField(default=list)),
                ("joined_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "session",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="players",
                        to="core.messagesession",
                    ),
                ),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("session", "user_id"), name="unique_session_player")],
            },
        ),
    ]
