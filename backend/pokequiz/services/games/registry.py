import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pokequiz.errors import (
    AlreadyInRoom,
    CodeSpaceExhausted,
    ContentUnavailable,
    InvalidName,
    NameTaken,
    NotEnoughPlayers,
    RoomAlreadyStarted,
    RoomFull,
    RoomNotFound,
)
from pokequiz.models import (
    FINISHED,
    LOBBY,
    PLAYER_COLORS,
    PLAYING,
    STAGE_QUESTION,
    GameSettings,
    Player,
    Question,
    Room,
)
from .scoring import fastest_correct, is_correct, points_for, rank_players, survival_time_limit


CODE_MIN = 1000
CODE_MAX = 9999
DEFAULT_MAX_PLAYERS = 10


@dataclass
class AnswerResult:
    player: Player
    is_correct: bool
    points: int
    all_answered: bool


@dataclass
class Advance:
    """Outcome of moving a room to its next question."""

    finished: bool
    question: Optional[Question] = None
    index: int = -1
    total: int = 0


@dataclass
class RoundResults:
    mode: str
    question_index: int
    correct_answer: str
    extra: str
    player_results: List[Dict[str, Any]] = field(default_factory=list)
    fastest: Optional[Player] = None

    def to_dict(self):
        return {
            'mode': self.mode,
            'questionNumber': self.question_index + 1,
            'correctAnswer': self.correct_answer,
            'extra': self.extra,
            'playerResults': self.player_results,
            'fastest': (
                {
                    'id': self.fastest.sid,
                    'displayName': self.fastest.display_name,
                    'time': round(self.fastest.last_answer_time, 2),
                }
                if self.fastest else None
            ),
        }


@dataclass
class Departure:
    code: str
    room: Room
    player: Optional[Player] = None
    host_left: bool = False


class SessionRegistry:
    """Owns every live room and all state transitions on them.

    The registry never schedules anything; timing belongs to the
    orchestrator. Every public method takes the registry lock so callers on
    different Socket.IO worker threads see one writer per room at a time.
    """

    def __init__(self, content_provider, clock: Callable[[], float] = time.time,
                 max_players: int = DEFAULT_MAX_PLAYERS, rng: Optional[random.Random] = None) -> None:
        self.content = content_provider
        self.clock = clock
        self.max_players = max_players
        self._rng = rng or random.Random()
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.RLock()

    # ---- lookup ----

    def get_room(self, code) -> Optional[Room]:
        if code is None:
            return None
        with self._lock:
            return self._rooms.get(str(code).strip())

    def rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def _session_room(self, sid: str) -> Optional[Room]:
        # Finished rooms only linger for late leaderboard reads
        for room in self._rooms.values():
            if room.status == FINISHED:
                continue
            if room.host_sid == sid or sid in room.players:
                return room
        return None

    # ---- lobby ----

    def create_room(self, host_sid: str) -> Room:
        with self._lock:
            if self._session_room(host_sid):
                raise AlreadyInRoom()
            if len(self._rooms) >= CODE_MAX - CODE_MIN + 1:
                raise CodeSpaceExhausted()
            while True:
                code = str(self._rng.randint(CODE_MIN, CODE_MAX))
                if code not in self._rooms:
                    break
            room = Room(code=code, host_sid=host_sid)
            self._rooms[code] = room
            return room

    def join_room(self, code, sid: str, display_name: str, avatar: Any = None) -> Player:
        with self._lock:
            room = self.get_room(code)
            if not room:
                raise RoomNotFound()
            if room.status != LOBBY:
                raise RoomAlreadyStarted()
            if len(room.players) >= self.max_players:
                raise RoomFull(f'This room is full ({self.max_players}/{self.max_players} players)')
            name = display_name.strip() if isinstance(display_name, str) else ''
            if not name:
                raise InvalidName()
            if any(p.display_name.casefold() == name.casefold() for p in room.players.values()):
                raise NameTaken()
            if self._session_room(sid):
                raise AlreadyInRoom()

            player = Player(
                sid=sid,
                display_name=name,
                avatar=avatar,
                color=PLAYER_COLORS[len(room.players) % len(PLAYER_COLORS)],
            )
            room.players[sid] = player
            return player

    # ---- game ----

    def start_game(self, code, settings: Optional[Dict[str, Any]] = None) -> Optional[Room]:
        """Resolve settings, build the deck and put the room in play.

        Returns None for an unknown room. The deck is fetched outside the
        lock since a cold content cache can take a while; the room is marked
        ``playing`` first so no one can join in the meantime.
        """
        with self._lock:
            room = self.get_room(code)
            if not room:
                return None
            if room.status != LOBBY:
                raise RoomAlreadyStarted()
            resolved = room.settings.merged(settings)
            rules = resolved.rules
            if len(room.players) < rules.min_players:
                raise NotEnoughPlayers(f'{resolved.mode} needs at least {rules.min_players} players')
            if rules.single_generation:
                resolved.generations = resolved.generations[:1]
            room.settings = resolved
            room.status = PLAYING

        try:
            count = self._round_count(resolved)
            questions = list(self.content.generate_questions(count, resolved.mode, resolved.generations))
        except ContentUnavailable:
            self._back_to_lobby(room)
            raise
        except Exception as exc:
            self._back_to_lobby(room)
            raise ContentUnavailable() from exc
        if not questions:
            self._back_to_lobby(room)
            raise ContentUnavailable()

        with self._lock:
            if self._rooms.get(room.code) is not room:
                # The host left while the deck was being built
                return None
            room.questions = questions
            room.current_question_index = -1
            room.time_limit = rules.time_limit
            room.round_open = False
            for player in room.players.values():
                player.score = 0
                player.streak = 0
                player.reset_round()
                if rules.uses_lives:
                    player.lives = resolved.lives
                    player.is_eliminated = False
                else:
                    player.lives = None
                    player.is_eliminated = False
            return room

    def _round_count(self, settings: GameSettings) -> int:
        rules = settings.rules
        if rules.single_generation:
            return self.content.species_count(settings.generations[0])
        if rules.count is not None:
            return rules.count
        return settings.count

    def _back_to_lobby(self, room: Room) -> None:
        with self._lock:
            room.status = LOBBY

    def submit_answer(self, code, sid: str, answer: Any, now: Optional[float] = None) -> Optional[AnswerResult]:
        with self._lock:
            room = self.get_room(code)
            if not room or room.status != PLAYING or not room.round_open:
                return None
            player = room.players.get(sid)
            if not player or player.has_answered or player.is_eliminated:
                return None
            question = room.current_question
            if question is None:
                return None

            now = self.clock() if now is None else now
            elapsed = max(0.0, now - (room.question_start_time or now))
            player.has_answered = True
            player.last_answer_time = elapsed

            correct = is_correct(question, answer)
            player.is_correct = correct
            if correct:
                points = points_for(elapsed)
                player.points_gained = points
                player.score += points
                player.streak += 1
                player.best_streak = max(player.best_streak, player.streak)
            else:
                points = 0
                player.points_gained = 0
                player.streak = 0
                if room.is_survival:
                    player.lose_life()

            return AnswerResult(player=player, is_correct=correct, points=points,
                                all_answered=room.all_answered())

    def all_answered(self, code) -> bool:
        with self._lock:
            room = self.get_room(code)
            return bool(room) and room.all_answered()

    def advance(self, code, expected_index: Optional[int] = None) -> Optional[Advance]:
        """Move the room past its current question.

        With ``expected_index`` the move only happens while the room still
        sits on that index, so two callers racing to advance the same
        question produce a single step.
        """
        with self._lock:
            room = self.get_room(code)
            if not room or room.status == LOBBY:
                return None
            if expected_index is not None and room.current_question_index != expected_index:
                return None
            if room.status == FINISHED:
                return Advance(finished=True, total=len(room.questions))

            room.current_question_index += 1
            index = room.current_question_index
            if room.is_survival:
                room.time_limit = survival_time_limit(room.time_limit, index)
            for player in room.players.values():
                player.reset_round()

            if room.is_survival:
                survivors = room.eligible_players()
                # A lone player keeps going until their own lives run out
                if not survivors or (len(survivors) <= 1 and len(room.players) > 1):
                    return self._finish(room)

            if index >= len(room.questions):
                return self._finish(room)

            room.round_open = True
            return Advance(finished=False, question=room.questions[index], index=index,
                           total=len(room.questions))

    def _finish(self, room: Room) -> Advance:
        room.status = FINISHED
        room.round_open = False
        return Advance(finished=True, total=len(room.questions))

    def begin_question(self, code, started_at: float) -> Optional[Room]:
        """Start the countdown of the current question at ``started_at``."""
        with self._lock:
            room = self.get_room(code)
            if not room:
                return None
            room.question_start_time = started_at
            room.stage = STAGE_QUESTION
            room.stage_deadline = started_at + room.time_limit
            return room

    def set_stage(self, code, stage: str, deadline: Optional[float] = None) -> Optional[Room]:
        with self._lock:
            room = self.get_room(code)
            if room:
                room.stage = stage
                room.stage_deadline = deadline
            return room

    def attach_timer(self, code, task) -> bool:
        """Give ``task`` to the room, replacing its pending one.

        A task for a room that is already gone is cancelled on the spot.
        """
        with self._lock:
            room = self.get_room(code)
            if not room:
                task.cancel()
                return False
            room.set_timer(task)
            return True

    def cancel_timer(self, code) -> None:
        with self._lock:
            room = self.get_room(code)
            if room:
                room.cancel_timer()

    def apply_round_timeouts(self, code) -> None:
        """Treat silence as a miss: streaks break, survival players lose a life."""
        with self._lock:
            room = self.get_room(code)
            if not room:
                return
            for player in room.players.values():
                if player.has_answered or player.is_eliminated:
                    continue
                player.streak = 0
                if room.is_survival:
                    player.lose_life()

    def close_round(self, code) -> Optional[RoundResults]:
        """Close the open round once; later calls for the same round return None."""
        with self._lock:
            room = self.get_room(code)
            if not room or not room.round_open:
                return None
            room.round_open = False
            self.apply_round_timeouts(code)
            question = room.current_question
            return RoundResults(
                mode=room.settings.mode,
                question_index=room.current_question_index,
                correct_answer=question.answer if question else '',
                extra=question.extra if question else '',
                player_results=[p.result_dict() for p in room.players.values()],
                fastest=fastest_correct(room.players.values()),
            )

    def fastest_correct_player(self, code) -> Optional[Player]:
        with self._lock:
            room = self.get_room(code)
            if not room:
                return None
            return fastest_correct(room.players.values())

    def leaderboard(self, code) -> List[dict]:
        with self._lock:
            room = self.get_room(code)
            if not room:
                return []
            return rank_players(room.players.values())

    # ---- teardown ----

    def remove_player(self, sid: str) -> Optional[Departure]:
        with self._lock:
            # A live room wins over a finished one the session also belongs to
            rooms = sorted(self._rooms.items(), key=lambda item: item[1].status == FINISHED)
            for code, room in rooms:
                if sid in room.players:
                    player = room.players.pop(sid)
                    return Departure(code=code, room=room, player=player)
                if room.host_sid == sid:
                    del self._rooms[code]
                    return Departure(code=code, room=room, host_left=True)
            return None

    def discard_room(self, code) -> Optional[Room]:
        with self._lock:
            room = self._rooms.pop(str(code), None)
            if room:
                room.cancel_timer()
            return room
