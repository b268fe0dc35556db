import redis
from datetime import datetime
from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, MEETING_TTL_SECONDS, CHAT_MEMBERS_TTL_SECONDS
from redis_keys import REDIS_MEETING_KEY, REDIS_PARTICIPANTS_KEY, REDIS_CHAT_USERS_KEY
from logging_config import get_logger

logger = get_logger(__name__)

# The client connects on first command; check_connection() is called by the entrypoint
redis_client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)


class RedisBackend:
    """Durable side of meetings and chat membership.

    The relay itself keeps no state here; it only reads chat membership when a
    message arrives without its member list.
    """

    def __init__(self, client: redis.Redis = redis_client):
        self.redis_client = client
        logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")

    def check_connection(self):
        try:
            self.redis_client.ping()
            logger.info(f"Redis client connected successfully to {REDIS_HOST}:{REDIS_PORT}")
        except Exception as e:
            logger.error(f"Failed to connect to Redis at {REDIS_HOST}:{REDIS_PORT}: {e}", exc_info=True)
            raise

    def create_meeting(self, meeting_id: str, host: str, ttl: int = MEETING_TTL_SECONDS):
        logger.info(f"Creating meeting {meeting_id} for host {host} with TTL {ttl} seconds")
        key = REDIS_MEETING_KEY.format(meeting_id=meeting_id)
        participants_key = REDIS_PARTICIPANTS_KEY.format(meeting_id=meeting_id)
        self.redis_client.hset(key, mapping={
            "meetingId": meeting_id,
            "host": host,
            "isActive": "true",
            "startTime": datetime.now().isoformat(),
        })
        self.redis_client.sadd(participants_key, host)
        if ttl:
            self.redis_client.expire(key, ttl)
            self.redis_client.expire(participants_key, ttl)
        return self.get_meeting(meeting_id)

    def get_meeting(self, meeting_id: str):
        logger.debug(f"Fetching meeting {meeting_id}")
        key = REDIS_MEETING_KEY.format(meeting_id=meeting_id)
        meeting_data = self.redis_client.hgetall(key)
        if not meeting_data:
            logger.debug(f"Meeting {meeting_id} not found in Redis")
            return None
        # Hash values come back as strings; only the flag needs converting
        result = dict(meeting_data)
        result["isActive"] = meeting_data.get("isActive") == "true"
        participants_key = REDIS_PARTICIPANTS_KEY.format(meeting_id=meeting_id)
        result["participants"] = sorted(self.redis_client.smembers(participants_key))
        return result

    def add_participant(self, meeting_id: str, user_id: str):
        participants_key = REDIS_PARTICIPANTS_KEY.format(meeting_id=meeting_id)
        added = self.redis_client.sadd(participants_key, user_id)
        if added:
            logger.debug(f"User {user_id} added to meeting {meeting_id}")
        return bool(added)

    def end_meeting(self, meeting_id: str):
        logger.info(f"Ending meeting {meeting_id}")
        key = REDIS_MEETING_KEY.format(meeting_id=meeting_id)
        self.redis_client.hset(key, mapping={
            "isActive": "false",
            "endTime": datetime.now().isoformat(),
        })
        return True

    def set_chat_members(self, chat_id: str, user_ids, ttl: int = CHAT_MEMBERS_TTL_SECONDS):
        """Replace the member set of a chat."""
        users_key = REDIS_CHAT_USERS_KEY.format(chat_id=chat_id)
        pipe = self.redis_client.pipeline()
        pipe.delete(users_key)
        if user_ids:
            pipe.sadd(users_key, *user_ids)
            if ttl:
                pipe.expire(users_key, ttl)
        pipe.execute()
        logger.debug(f"Chat {chat_id} membership set to {len(set(user_ids))} users")
        return True

    def get_chat_members(self, chat_id: str):
        """Get all member user ids of a chat."""
        users_key = REDIS_CHAT_USERS_KEY.format(chat_id=chat_id)
        users = self.redis_client.smembers(users_key)
        logger.debug(f"Chat {chat_id} has {len(users)} members")
        return users


redis_backend = RedisBackend()
