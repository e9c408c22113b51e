import os

# services.bot.config reads these at import time
os.environ.setdefault("TOKEN", "test-token")
os.environ.setdefault("SYNC_COMMANDS", "FALSE")
os.environ.setdefault("DISCORD_CLIENT_ID", "1234")
