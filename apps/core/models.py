from django.db import models
from django.utils import timezone

from apps.core.game import GuessHistory


class MessageSession(models.Model):
    session_id = models.CharField(max_length=32, primary_key=True)
    guild_id = models.CharField(max_length=32)
    channel_id = models.CharField(max_length=32)
    game_date = models.DateField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(default=timezone.now)
    last_update = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        indexes = [models.Index(fields=["channel_id", "game_date"], name="message_session_channel_date")]


class SessionPlayer(models.Model):
    session = models.ForeignKey(MessageSession, on_delete=models.CASCADE, related_name="players")
    user_id = models.CharField(max_length=32)
    username = models.CharField(max_length=255)
    avatar_url = models.TextField(null=True)
    guess_history = models.JSONField(default=list)
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [models.UniqueConstraint(fields=["session", "user_id"], name="unique_session_player")]

    def history(self) -> GuessHistory:
        return GuessHistory.from_list(self.guess_history)


class UserSessionMapping(models.Model):
    user_session_id = models.CharField(max_length=128, primary_key=True)
    message_session_id = models.CharField(max_length=32, db_index=True)


class ActiveSession(models.Model):
    session_id = models.CharField(max_length=32, primary_key=True)
    guild_id = models.CharField(max_length=32)
    channel_id = models.CharField(max_length=32)
    message_id = models.CharField(max_length=32)
    game_date = models.DateField(db_index=True)
    created_at = models.DateTimeField(default=timezone.now)
    last_update = models.DateTimeField(auto_now=True)


class ActiveSessionPlayer(models.Model):
    session = models.ForeignKey(ActiveSession, on_delete=models.CASCADE, related_name="players")
    user_id = models.CharField(max_length=32)
    username = models.CharField(max_length=255)
    avatar_url = models.TextField(null=True)
    guess_history = models.JSONField(default=list)
    last_guess_count = models.IntegerField(default=0)
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [models.UniqueConstraint(fields=["session", "user_id"], name="unique_active_session_player")]


class GameResult(models.Model):
    guild_id = models.CharField(max_length=32)
    user_id = models.CharField(max_length=32)
    username = models.CharField(max_length=255)
    avatar = models.CharField(max_length=255, null=True)
    game_date = models.DateField()
    score = models.IntegerField()
    mistakes = models.IntegerField()
    guess_history = models.JSONField(default=list)
    completed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["guild_id", "user_id", "game_date"], name="unique_player_game")
        ]
        indexes = [models.Index(fields=["guild_id", "game_date"], name="game_result_guild_date")]

    def history(self) -> GuessHistory:
        return GuessHistory.from_list(self.guess_history)

    @property
    def avatar_url(self) -> str | None:
        if not self.avatar:
            return None
        return f"https://cdn.discordapp.com/avatars/{self.user_id}/{self.avatar}.png"


class PendingRecap(models.Model):
    channel_id = models.CharField(max_length=32)
    guild_id = models.CharField(max_length=32)
    game_date = models.DateField()
    recap_posted = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)
    posted_at = models.DateTimeField(null=True)

    class Meta:
        constraints = [models.UniqueConstraint(fields=["channel_id", "game_date"], name="unique_channel_recap")]
        indexes = [models.Index(fields=["recap_posted", "game_date"], name="pending_recap_posted_date")]


class PostedNotification(models.Model):
    guild_id = models.CharField(max_length=32)
    user_id = models.CharField(max_length=32)
    game_date = models.DateField()
    posted_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["guild_id", "user_id", "game_date"], name="unique_notification")
        ]
