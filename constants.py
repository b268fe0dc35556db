import os

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

MEETING_TTL_SECONDS = int(os.getenv("MEETING_TTL_SECONDS", 86400))
# 0 keeps chat membership until it is overwritten
CHAT_MEMBERS_TTL_SECONDS = int(os.getenv("CHAT_MEMBERS_TTL_SECONDS", 0))

CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

USER_ID_HEADER = "X-User-Id"
