from services.env import get_env, get_env_int

PUZZLE_SOURCE_URL = get_env("PUZZLE_SOURCE_URL", "https://www.nytimes.com/svc/connections/v2/{date}.json")
REQUEST_TIMEOUT = get_env_int("REQUEST_TIMEOUT", 10)
SESSION_MAX_AGE = get_env_int("SESSION_MAX_AGE", 2 * 24 * 60 * 60)
DISCORD_CLIENT_ID = get_env("DISCORD_CLIENT_ID", "")
DISCORD_CLIENT_SECRET = get_env("DISCORD_CLIENT_SECRET", "")
DISCORD_TOKEN_URL = get_env("DISCORD_TOKEN_URL", "https://discord.com/api/oauth2/token")
