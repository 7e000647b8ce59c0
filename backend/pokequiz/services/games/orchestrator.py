from typing import Any, Dict, Optional

from pokequiz.models import (
    PLAYING,
    STAGE_FINISHED,
    STAGE_LEADERBOARD,
    STAGE_RESULTS,
)
from .registry import AnswerResult, Departure, RoundResults, SessionRegistry


NAMESPACE = '/ws'


def room_channel(code: str) -> str:
    return f"game:{code}"


class RoundOrchestrator:
    """Timing authority for every room.

    Pipeline per round: question -> results -> leaderboard -> next question
    (or game over). Each delayed step carries the question index it was
    scheduled for and aborts when the room has moved on or is gone.
    """

    def __init__(self, app, registry: SessionRegistry, socketio, scheduler, namespace: str = NAMESPACE) -> None:
        self.app = app
        self.registry = registry
        self.socketio = socketio
        self.scheduler = scheduler
        self.namespace = namespace

    # ---- config ----

    def _seconds(self, key: str, default: float) -> float:
        return float(self.app.config.get(key, default))

    @property
    def round_buffer(self) -> float:
        return self._seconds('ROUND_BUFFER_SEC', 0.5)

    @property
    def results_duration(self) -> float:
        return self._seconds('RESULTS_DURATION_SEC', 6)

    @property
    def leaderboard_duration(self) -> float:
        return self._seconds('LEADERBOARD_DURATION_SEC', 5)

    @property
    def final_screen_duration(self) -> float:
        return self._seconds('FINAL_SCREEN_DURATION_SEC', 20)

    # ---- messaging ----

    def broadcast(self, code: str, event: str, data: Dict[str, Any]) -> None:
        self.socketio.emit(event, data, to=room_channel(code), namespace=self.namespace)

    def broadcast_lobby(self, code: str) -> None:
        room = self.registry.get_room(code)
        if room:
            self.broadcast(code, 'lobby-update', {'players': [p.to_dict() for p in room.players.values()]})

    def _schedule(self, code: str, delay: float, callback, *args) -> None:
        task = self.scheduler.schedule(delay, callback, *args)
        self.registry.attach_timer(code, task)

    def _is_current(self, code: str, index: int, stage: Optional[str] = None) -> bool:
        room = self.registry.get_room(code)
        if not room or room.status != PLAYING or room.current_question_index != index:
            return False
        return stage is None or room.stage == stage

    # ---- lifecycle ----

    def start_game(self, code: str, settings: Optional[Dict[str, Any]] = None):
        """Build the deck and dispatch the first question.

        Returns the room, or None when the code is unknown. Rejections from
        the registry propagate to the caller.
        """
        room = self.registry.start_game(code, settings)
        if not room:
            return None
        self.app.logger.info(
            f"[game-start] room={code} mode={room.settings.mode} rounds={len(room.questions)} players={len(room.players)}"
        )
        self.broadcast(code, 'game-started', {
            'totalQuestions': len(room.questions),
            'mode': room.settings.mode,
        })
        self.next_question(code, -1)
        return room

    def next_question(self, code: str, expected_index: Optional[int] = None) -> bool:
        """Advance to the next question (or end the game).

        Returns False when another caller already moved the room past
        ``expected_index``.
        """
        step = self.registry.advance(code, expected_index)
        if step is None:
            return False
        self.registry.cancel_timer(code)
        if step.finished:
            self._game_over(code)
            return True

        room = self.registry.begin_question(code, self.registry.clock())
        if not room:
            return False
        self.broadcast(code, 'question', {
            'question': step.question.to_dict(include_answer=False),
            'questionNumber': step.index + 1,
            'totalQuestions': step.total,
            'timeLimit': room.time_limit,
            'deadline': room.stage_deadline,
        })
        delay = room.time_limit + self.round_buffer
        self.app.logger.info(f"[timer-set] room={code} stage=question round={step.index + 1} duration={delay}s")
        self._schedule(code, delay, self._on_deadline, code, step.index)
        return True

    def _on_deadline(self, code: str, index: int) -> None:
        if not self._is_current(code, index):
            self.app.logger.info(f"[timer-abort] room={code} round={index + 1} stale deadline")
            return
        self.app.logger.info(f"[timer-fire] room={code} round={index + 1} deadline reached")
        self.end_round(code)

    def submit_answer(self, code: str, sid: str, answer: Any) -> Optional[AnswerResult]:
        result = self.registry.submit_answer(code, sid, answer)
        if not result:
            return None
        self.socketio.emit('answer-accepted', {
            'isCorrect': result.is_correct,
            'pointsGained': result.points,
            'lives': result.player.lives,
        }, to=sid, namespace=self.namespace)
        self.broadcast(code, 'player-answered', {
            'playerId': result.player.sid,
            'displayName': result.player.display_name,
        })
        room = self.registry.get_room(code)
        if result.all_answered and room and room.early_reveal:
            self.end_round(code)
        return result

    def end_round(self, code: str) -> Optional[RoundResults]:
        """Reveal the round's results; a no-op when the round is already closed."""
        results = self.registry.close_round(code)
        if results is None:
            return None
        self.registry.cancel_timer(code)
        self.app.logger.info(
            f"[round-end] room={code} round={results.question_index + 1} "
            f"fastest={results.fastest.display_name if results.fastest else None}"
        )
        self.broadcast(code, 'round-results', results.to_dict())

        delay = self.results_duration
        self.registry.set_stage(code, STAGE_RESULTS, self.registry.clock() + delay)
        self._schedule(code, delay, self._show_leaderboard, code, results.question_index)
        return results

    def _show_leaderboard(self, code: str, index: int) -> None:
        if not self._is_current(code, index, STAGE_RESULTS):
            self.app.logger.info(f"[timer-abort] room={code} round={index + 1} stale results")
            return
        self.broadcast(code, 'leaderboard', {'players': self.registry.leaderboard(code)})
        delay = self.leaderboard_duration
        self.registry.set_stage(code, STAGE_LEADERBOARD, self.registry.clock() + delay)
        self._schedule(code, delay, self._after_leaderboard, code, index)

    def _after_leaderboard(self, code: str, index: int) -> None:
        if not self._is_current(code, index, STAGE_LEADERBOARD):
            self.app.logger.info(f"[timer-abort] room={code} round={index + 1} stale leaderboard")
            return
        self.next_question(code, index)

    def host_advance(self, code: str, sid: str) -> bool:
        """Let the host skip the results/leaderboard dwell."""
        room = self.registry.get_room(code)
        if not room or room.host_sid != sid or room.status != PLAYING or room.round_open:
            return False
        return self.next_question(code, room.current_question_index)

    def _game_over(self, code: str) -> None:
        board = self.registry.leaderboard(code)
        hold = self.final_screen_duration
        self.registry.set_stage(code, STAGE_FINISHED, self.registry.clock() + hold)
        self.app.logger.info(f"[game-over] room={code} winner={board[0]['displayName'] if board else None}")
        self.broadcast(code, 'game-over', {
            'finalLeaderboard': board,
            'winner': board[0] if board else None,
        })
        self._schedule(code, hold, self._discard, code)

    def _discard(self, code: str) -> None:
        if self.registry.discard_room(code):
            self.app.logger.info(f"[room-discarded] room={code}")

    # ---- departures ----

    def handle_disconnect(self, sid: str) -> Optional[Departure]:
        departure = self.registry.remove_player(sid)
        if not departure:
            return None
        code = departure.code

        if departure.host_left:
            departure.room.cancel_timer()
            self.app.logger.info(f"[room-closed] room={code} host left")
            self.broadcast(code, 'room-closed', {'code': code, 'reason': 'host_left'})
            return departure

        player = departure.player
        self.app.logger.info(f"[player-left] room={code} player={player.display_name}")
        self.broadcast(code, 'player-left', {'playerId': player.sid, 'displayName': player.display_name})
        self.broadcast_lobby(code)

        room = departure.room
        if room.status == PLAYING and room.round_open and room.early_reveal and self.registry.all_answered(code):
            self.end_round(code)
        return departure
