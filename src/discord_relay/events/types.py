"""Wire event names.

Learn: Centralizing event names as constants prevents typos and
makes it easy to discover every event the relay speaks.
"""

# ─── Client → server ─────────────────────────────────────

GET_CHANNELS = "get_channels"
JOIN_CHANNEL = "join_channel"
LEAVE_CHANNEL = "leave_channel"
SEND_MESSAGE = "send_message"
TYPING = "typing"
PING = "ping"

# ─── Server → client ─────────────────────────────────────

CHANNELS_LIST = "channels_list"
CHANNEL_UPDATE = "channel_update"
USER_INFO = "user_info"
MESSAGE = "message"
MESSAGE_UPDATE = "message_update"
MESSAGE_DELETE = "message_delete"
USER_JOINED = "user_joined"
USER_LEFT = "user_left"
TYPING_START = "typing_start"
ERROR = "error"
ACK = "ack"
PONG = "pong"
