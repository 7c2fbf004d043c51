# Inbound (client -> server)
JOIN_ROOM = "join room"
SIGNAL = "signal"
TOGGLE_MUTE = "toggle-mute"
CHAT_MESSAGE = "chat message"

# Outbound (server -> client)
CONNECTED = "connected"  # {"connectionId": id}, sent once to the new connection only
USER_JOINED = "user-joined"  # connection id, to pre-existing room members
USER_LEFT = "user-left"  # connection id, to remaining room members
USER_MUTED = "user-muted"  # {"userId": id, "isMuted": bool}
# SIGNAL and CHAT_MESSAGE are reused outbound with the same names
