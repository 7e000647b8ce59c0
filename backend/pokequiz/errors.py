"""User-facing rejections.

Each rejection is terminal for the request that caused it; the client shows
``message`` and lets the user correct the input. ``reason`` is a stable code
clients can switch on.
"""


class GameRejection(Exception):
    reason = 'rejected'
    default_message = 'Request rejected'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'reason': self.reason, 'message': self.message}


class RoomNotFound(GameRejection):
    reason = 'room_not_found'
    default_message = 'This room does not exist'


class RoomAlreadyStarted(GameRejection):
    reason = 'room_already_started'
    default_message = 'The game has already started'


class RoomFull(GameRejection):
    reason = 'room_full'
    default_message = 'This room is full'


class NameTaken(GameRejection):
    reason = 'name_taken'
    default_message = 'This name is already taken'


class InvalidName(GameRejection):
    reason = 'invalid_name'
    default_message = 'A display name is required'


class AlreadyInRoom(GameRejection):
    reason = 'already_in_room'
    default_message = 'This session is already part of another room'


class NotEnoughPlayers(GameRejection):
    reason = 'not_enough_players'
    default_message = 'Not enough players to start this mode'


class InvalidSettings(GameRejection):
    reason = 'invalid_settings'
    default_message = 'Invalid game settings'


class ContentUnavailable(GameRejection):
    reason = 'content_unavailable'
    default_message = 'Questions could not be loaded, try again'


class CodeSpaceExhausted(GameRejection):
    reason = 'no_room_code'
    default_message = 'No room code is available right now'
