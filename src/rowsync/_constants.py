"""Internal constants shared across the library."""

USER_AGENT = "rowsync-python"

DEFAULT_SCHEMA = "public"
DEFAULT_PRIMARY_KEY = "id"
DEFAULT_SELECT = "*"

REST_PATH = "/rest/v1"
REALTIME_PATH = "/realtime/v1/websocket"
REALTIME_VSN = "1.0.0"

#: Prefix of the channel key a single-row subscription registers under.
CHANNEL_KEY_PREFIX = "realtime"

#: PostgREST error code for "single object requested, 0 (or >1) rows returned".
PGRST_NO_SINGLE_ROW = "PGRST116"

PGRST_OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"

# ------------------------------------------------------------------
# Phoenix channel protocol
# ------------------------------------------------------------------

PHX_JOIN = "phx_join"
PHX_LEAVE = "phx_leave"
PHX_REPLY = "phx_reply"
PHX_ERROR = "phx_error"
PHX_CLOSE = "phx_close"
PHX_HEARTBEAT = "heartbeat"
PHX_TOPIC = "phoenix"
POSTGRES_CHANGES = "postgres_changes"
REALTIME_TOPIC_PREFIX = "realtime:"

#: Change-feed event filter that matches every event type.
EVENT_ALL = "*"
