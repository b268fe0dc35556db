REDIS_MEETING_KEY = "meeting:{meeting_id}" # meeting id - meeting metadata hash
REDIS_PARTICIPANTS_KEY = "meeting:participants:{meeting_id}" # meeting id - set of user ids
REDIS_CHAT_USERS_KEY = "chat:users:{chat_id}" # chat id - set of member user ids

# **Example `meeting:{id}` hash fields**
# - `meetingId` = `{meetingId}`
# - `host` = user id of the creator
# - `isActive` = "true" / "false"
# - `startTime` = ISO timestamp
# - `endTime` = ISO timestamp (only once ended)
