"""Error taxonomy for lobby and round operations.

Every failure a client can cause is a ``GameError`` subclass carrying a stable
snake_case ``code`` (sent over the wire) and an HTTP-style ``status`` taken from
its category. Game code raises them; the session layer turns them into failed
command results.
"""

from __future__ import annotations


class GameError(Exception):
    code = "game_error"
    status = 400
    message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


# Categories


class ValidationError(GameError):
    code = "invalid_payload"
    status = 400
    message = "Invalid payload"


class AuthError(GameError):
    code = "unauthorized"
    status = 401
    message = "Authentication token required"


class ForbiddenError(GameError):
    code = "forbidden"
    status = 403
    message = "Not allowed"


class NotFoundError(GameError):
    code = "not_found"
    status = 404
    message = "Not found"


class ConflictError(GameError):
    code = "state_conflict"
    status = 409
    message = "Request conflicts with the current state"


# Validation


class InvalidName(ValidationError):
    code = "invalid_name"
    message = "Player name must be 1-10 characters"


class InvalidSettings(ValidationError):
    code = "invalid_settings"
    message = "Invalid settings"


class InvalidTeam(ValidationError):
    code = "invalid_team"
    message = "Team must be 'blue' or 'red'"


class InvalidAnswer(ValidationError):
    code = "invalid_answer"
    message = "Answer is required unless stealing"


class InvalidMessage(ValidationError):
    code = "invalid_message"
    message = "Message must be 1-300 characters"


# Capability


class InvalidToken(AuthError):
    code = "invalid_token"
    message = "Invalid authentication token"


class TokenExpired(AuthError):
    code = "token_expired"
    message = "Authentication token expired"


class LobbyMismatch(ForbiddenError):
    code = "lobby_mismatch"
    message = "Token does not belong to this lobby"


# Authorization


class NotHost(ForbiddenError):
    code = "not_host"
    message = "Only the host can do that"


class NotCaptain(ForbiddenError):
    code = "not_captain"
    message = "Only the team captain can submit an answer"


class CannotKickHost(ForbiddenError):
    code = "cannot_kick_host"
    message = "Host cannot be kicked"


class NotOnTeam(ForbiddenError):
    code = "not_on_team"
    message = "Join a team first"


# Not found


class LobbyNotFound(NotFoundError):
    code = "lobby_not_found"
    message = "Lobby not found"


class PlayerNotFound(NotFoundError):
    code = "player_not_found"
    message = "Player no longer in lobby - please rejoin"


class TargetNotFound(NotFoundError):
    code = "target_not_found"
    message = "Target player not found"


# State conflicts


class LobbyFull(ConflictError):
    code = "lobby_full"
    message = "Lobby is full"


class TeamFull(ConflictError):
    code = "team_full"
    message = "Team is full"


class CaptaincyConflict(ConflictError):
    code = "captaincy_conflict"
    message = "Team already has a captain"


class AlreadyOnTeam(ConflictError):
    code = "already_on_team"
    message = "Player is already on that team"


class GameAlreadyStarted(ConflictError):
    code = "game_already_started"
    message = "Game has already started"


class AlreadyStarted(ConflictError):
    code = "already_started"
    message = "Game already started"


class MissingCaptain(ConflictError):
    code = "missing_captain"
    message = "Both teams must have a captain"


class NotInGame(ConflictError):
    code = "not_in_game"
    message = "Lobby is not in a game"


class GameNotPlaying(ConflictError):
    code = "game_not_playing"
    message = "Game is not in progress"


class QuestionsPending(ConflictError):
    code = "questions_pending"
    message = "Questions are still being prepared"


class RoundInProgress(ConflictError):
    code = "round_in_progress"
    message = "Current round has not been resolved yet"


class NoRoundsRemaining(ConflictError):
    code = "no_rounds_remaining"
    message = "No rounds remaining"


class RoundMismatch(ConflictError):
    code = "round_mismatch"
    message = "Round has changed - please re-sync"


class AlreadySubmitted(ConflictError):
    code = "already_submitted"
    message = "Your team already submitted this round"


class RoundClosed(ConflictError):
    code = "round_closed"
    message = "Round is no longer accepting answers"
