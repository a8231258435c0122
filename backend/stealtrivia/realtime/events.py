"""Socket.IO event names.

Server -> client pushes use hyphenated names; client -> server commands use
``area:action`` names like the rest of the socket handlers.
"""

# Pushes
PLAYER_JOINED = "player-joined"
PLAYER_LEFT = "player-left"
PLAYER_DISCONNECTED = "player-disconnected"
PLAYER_RECONNECTED = "player-reconnected"
PLAYER_TEAM_CHANGED = "player-team-changed"
PLAYER_KICKED = "player-kicked"
YOU_WERE_KICKED = "you-were-kicked"
LOBBY_UPDATED = "lobby-updated"
LOBBY_ENDED = "lobby-ended"
SETTINGS_UPDATED = "settings-updated"
GAME_STARTED = "game-started"
ROUND_STARTED = "round-started"
ANSWER_SUBMITTED = "answer-submitted"
ROUND_RESULTS = "round-results"
GAME_ENDED = "game-ended"
CHAT_MESSAGE = "chat-message"

# Client commands
LOBBY_JOIN = "lobby:join"
LOBBY_LEAVE = "lobby:leave"
CHAT_SEND = "chat:message"

ERROR = "lobby:error"
