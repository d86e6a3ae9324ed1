# Canonical constants shared by the session and room layers.

# Key-value credential storage keys
TOKEN_KEY = "auth-token"
USER_KEY = "auth-user"

# Credential kinds
KIND_REGISTERED = "registered"
KIND_GUEST = "guest"

GUEST_ID_PREFIX = "anon_"
GUEST_NAME_PREFIX = "Guest "

# Room codes: exactly 6 chars, A-Z and 0-9, stored upper-case
ROOM_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ROOM_CODE_LENGTH = 6

ROOM_NAME_MIN = 3
ROOM_NAME_MAX = 50
ROOM_DESCRIPTION_MAX = 200
ROOM_CAPACITY_MIN = 2
ROOM_CAPACITY_MAX = 50

# Drawing operation kinds
OP_DRAW = "draw"
OP_ERASE = "erase"

# Drawing tools
TOOL_PEN = "pen"
TOOL_ERASER = "eraser"
