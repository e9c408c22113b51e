from zoneinfo import ZoneInfo

from services.env import get_env, get_env_bool, get_env_int

TOKEN = get_env("TOKEN")
COORDINATOR_URL = get_env("COORDINATOR_URL", "http://localhost:8000/api").rstrip("/")
REQUEST_TIMEOUT = get_env_int("REQUEST_TIMEOUT", 10)
CLIENT_WAIT_TIMEOUT = get_env_int("CLIENT_WAIT_TIMEOUT", 60)
SYNC_COMMANDS = get_env_bool("SYNC_COMMANDS", True)
MIGRATE_ON_STARTUP = get_env_bool("MIGRATE_ON_STARTUP", False)
USERNAME_MAX_LENGTH = get_env_int("USERNAME_MAX_LENGTH", 12)

# The puzzle day rolls over at midnight in this zone, whatever the host's zone is
TIMEZONE = ZoneInfo(get_env("TIMEZONE", "America/New_York"))

RECAP_HOUR = get_env_int("RECAP_HOUR", 9)
RECAP_MINUTE = get_env_int("RECAP_MINUTE", 5)
RECAP_TIMEZONE_OFFSET = get_env_int("RECAP_TIMEZONE_OFFSET", -4)
RECAP_CHECK_INTERVAL = get_env_int("RECAP_CHECK_INTERVAL", 60)

POLL_INTERVAL = get_env_int("POLL_INTERVAL", 5)
SESSION_MAX_AGE = get_env_int("SESSION_MAX_AGE", 6 * 60 * 60)
RETIREMENT_GRACE_PERIOD = get_env_int("RETIREMENT_GRACE_PERIOD", 30)

COMPLETION_NOTIFICATIONS = get_env_bool("COMPLETION_NOTIFICATIONS", False)
NOTIFICATION_CHANNEL_NAME = get_env("NOTIFICATION_CHANNEL_NAME", "synapse")
NOTIFICATION_INTERVAL = get_env_int("NOTIFICATION_INTERVAL", 30)
DISCORD_CLIENT_ID = get_env("DISCORD_CLIENT_ID", "")
ACTIVITY_URL = get_env("ACTIVITY_URL", f"https://discord.com/activities/{DISCORD_CLIENT_ID}")
