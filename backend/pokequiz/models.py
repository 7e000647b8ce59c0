"""In-memory game records: rooms, players, settings and the question union."""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pokequiz.errors import InvalidSettings


PLAYER_COLORS = [
    '#FF0000', '#3B4CCA', '#8BAC0F', '#FFDE00', '#CC0000',
    '#B3A125', '#306230', '#0F380F', '#FFFFFF', '#555555',
]

# Room lifecycle
LOBBY = 'lobby'
PLAYING = 'playing'
FINISHED = 'finished'

# Stages inside a playing room
STAGE_QUESTION = 'question'
STAGE_RESULTS = 'results'
STAGE_LEADERBOARD = 'leaderboard'
STAGE_FINISHED = 'finished'


class InputMode:
    CHOICE = 'QCM'
    TEXT = 'TEXT'


class GameMode:
    CLASSIC = 'CLASSIC'
    MARATHON = 'MARATHON'
    SURVIVAL = 'SURVIVAL'
    ORTHOGRAPH = 'ORTHOGRAPH'
    SHADOW = 'SHADOW'
    CRY = 'CRY'
    POKEDEX = 'POKEDEX'

    ALL = (CLASSIC, MARATHON, SURVIVAL, ORTHOGRAPH, SHADOW, CRY, POKEDEX)


@dataclass(frozen=True)
class ModeRules:
    """Per-mode timing and deck rules.

    ``count`` is None when the host picks the number of rounds.
    ``early_reveal`` ends a round as soon as every eligible player answered;
    when False the round always runs to its deadline.
    """

    time_limit: float
    input_mode: str = InputMode.CHOICE
    count: Optional[int] = None
    min_players: int = 1
    uses_lives: bool = False
    single_generation: bool = False
    early_reveal: bool = True


MODE_RULES: Dict[str, ModeRules] = {
    GameMode.CLASSIC: ModeRules(time_limit=15),
    GameMode.MARATHON: ModeRules(time_limit=30, input_mode=InputMode.TEXT, single_generation=True),
    GameMode.SURVIVAL: ModeRules(time_limit=12, input_mode=InputMode.TEXT, count=100, min_players=2, uses_lives=True),
    GameMode.ORTHOGRAPH: ModeRules(time_limit=20, input_mode=InputMode.TEXT),
    GameMode.SHADOW: ModeRules(time_limit=20, input_mode=InputMode.TEXT),
    GameMode.CRY: ModeRules(time_limit=15),
    GameMode.POKEDEX: ModeRules(time_limit=15),
}

MAX_QUESTION_COUNT = 151


@dataclass
class GameSettings:
    mode: str = GameMode.CLASSIC
    count: int = 12
    lives: int = 4
    generations: List[int] = field(default_factory=lambda: [1])
    wait_for_timer: Optional[bool] = None

    @property
    def rules(self) -> ModeRules:
        return MODE_RULES[self.mode]

    def merged(self, overrides: Optional[Dict[str, Any]]) -> 'GameSettings':
        """Return a copy with wire-format overrides applied and validated."""
        overrides = overrides or {}
        if not isinstance(overrides, dict):
            raise InvalidSettings('settings must be an object')
        mode = str(overrides.get('mode') or self.mode).upper()
        if mode not in MODE_RULES:
            raise InvalidSettings(f"Unknown game mode: {mode}")

        # 'limit' is the field name older host screens send
        count = overrides.get('count', overrides.get('limit', self.count))
        lives = overrides.get('lives', self.lives)
        try:
            count = int(count)
            lives = int(lives)
        except (TypeError, ValueError):
            raise InvalidSettings('count and lives must be integers')
        if not 1 <= count <= MAX_QUESTION_COUNT:
            raise InvalidSettings(f'count must be between 1 and {MAX_QUESTION_COUNT}')
        if lives < 1:
            raise InvalidSettings('lives must be at least 1')

        generations = overrides.get('generations', self.generations) or [1]
        try:
            generations = sorted({int(g) for g in generations})
        except (TypeError, ValueError):
            raise InvalidSettings('generations must be a list of numbers')

        wait_for_timer = overrides.get('waitForTimer', self.wait_for_timer)
        return GameSettings(
            mode=mode,
            count=count,
            lives=lives,
            generations=generations,
            wait_for_timer=None if wait_for_timer is None else bool(wait_for_timer),
        )

    def to_dict(self):
        return {
            'mode': self.mode,
            'count': self.count,
            'lives': self.lives,
            'generations': list(self.generations),
            'waitForTimer': self.wait_for_timer,
        }


# ---- Questions ----

@dataclass(frozen=True)
class Subject:
    """The species a question is about."""

    dex_id: int
    name: str
    sprite: Optional[str] = None

    def to_dict(self):
        return {'id': self.dex_id, 'name': self.name, 'sprite': self.sprite}


@dataclass(frozen=True)
class Question:
    subject: Subject
    prompt: str
    answer: str
    options: Tuple[str, ...] = ()

    type: ClassVar[str] = 'WHO_IS_THIS'
    input_mode: ClassVar[str] = InputMode.CHOICE

    def __post_init__(self):
        if self.input_mode == InputMode.CHOICE:
            if self.options.count(self.answer) != 1:
                raise ValueError(f'{self.type}: answer {self.answer!r} must appear exactly once in options')
            if len(set(self.options)) != len(self.options):
                raise ValueError(f'{self.type}: options must be distinct')
        elif self.options:
            raise ValueError(f'{self.type}: free-text questions take no options')

    @property
    def extra(self) -> str:
        return ''

    def variant_fields(self) -> Dict[str, Any]:
        return {}

    def to_dict(self, include_answer: bool = True):
        data = {
            'type': self.type,
            'inputType': self.input_mode,
            'pokemon': self.subject.to_dict(),
            'text': self.prompt,
            'options': list(self.options),
        }
        data.update(self.variant_fields())
        if include_answer:
            data['answer'] = self.answer
            data['extra'] = self.extra
        return data


@dataclass(frozen=True)
class IdentityQuestion(Question):
    type: ClassVar[str] = 'WHO_IS_THIS'


@dataclass(frozen=True)
class TextIdentityQuestion(Question):
    hide_sprite: bool = False
    progressive_reveal: bool = False

    type: ClassVar[str] = 'WHO_IS_THIS_TEXT'
    input_mode: ClassVar[str] = InputMode.TEXT

    def variant_fields(self):
        return {'hideSprite': self.hide_sprite, 'progressiveReveal': self.progressive_reveal}


@dataclass(frozen=True)
class TypeQuestion(Question):
    type: ClassVar[str] = 'GUESS_TYPE'


@dataclass(frozen=True)
class DexNumberQuestion(Question):
    type: ClassVar[str] = 'DEX_NUMBER'


@dataclass(frozen=True)
class NumberIdentityQuestion(Question):
    type: ClassVar[str] = 'WHO_IS_NUMBER'

    def variant_fields(self):
        return {'hideSprite': True}


@dataclass(frozen=True)
class ChronoOrderQuestion(Question):
    images: Tuple[Optional[str], ...] = ()

    type: ClassVar[str] = 'ORDER_CHRONO'

    def variant_fields(self):
        return {'extraImages': list(self.images)}


@dataclass(frozen=True)
class StatBattleQuestion(Question):
    stat: str = 'hp'
    comparison: str = ''

    type: ClassVar[str] = 'STATS_BATTLE'

    @property
    def extra(self) -> str:
        return self.comparison

    def variant_fields(self):
        return {'stat': self.stat}


@dataclass(frozen=True)
class CryQuestion(Question):
    audio: str = ''

    type: ClassVar[str] = 'GUESS_CRY'

    def variant_fields(self):
        return {'audio': self.audio, 'hideSprite': True}


# ---- Players and rooms ----

@dataclass
class Player:
    sid: str
    display_name: str
    avatar: Any
    color: str
    score: int = 0
    has_answered: bool = False
    is_correct: bool = False
    last_answer_time: Optional[float] = None
    points_gained: int = 0
    streak: int = 0
    best_streak: int = 0
    lives: Optional[int] = None
    is_eliminated: bool = False

    def reset_round(self) -> None:
        self.has_answered = False
        self.is_correct = False
        self.last_answer_time = None
        self.points_gained = 0

    def lose_life(self) -> None:
        if self.lives is None or self.is_eliminated:
            return
        self.lives -= 1
        if self.lives <= 0:
            self.lives = 0
            self.is_eliminated = True

    def to_dict(self):
        return {
            'id': self.sid,
            'displayName': self.display_name,
            'avatar': self.avatar,
            'color': self.color,
            'score': self.score,
            'hasAnswered': self.has_answered,
            'streak': self.streak,
            'lives': self.lives,
            'isEliminated': self.is_eliminated,
        }

    def result_dict(self):
        data = self.to_dict()
        data.update({
            'isCorrect': self.is_correct,
            'pointsGained': self.points_gained,
            'answerTime': self.last_answer_time,
        })
        return data


@dataclass
class Room:
    code: str
    host_sid: str
    status: str = LOBBY
    stage: Optional[str] = None
    players: Dict[str, Player] = field(default_factory=dict)
    questions: List[Question] = field(default_factory=list)
    current_question_index: int = -1
    question_start_time: Optional[float] = None
    stage_deadline: Optional[float] = None
    settings: GameSettings = field(default_factory=GameSettings)
    time_limit: float = 15
    round_open: bool = False
    timer: Any = None

    @property
    def rules(self) -> ModeRules:
        return self.settings.rules

    @property
    def is_survival(self) -> bool:
        return self.rules.uses_lives

    @property
    def early_reveal(self) -> bool:
        if self.settings.wait_for_timer is not None:
            return not self.settings.wait_for_timer
        return self.rules.early_reveal

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.current_question_index < len(self.questions):
            return self.questions[self.current_question_index]
        return None

    def eligible_players(self) -> List[Player]:
        return [p for p in self.players.values() if not p.is_eliminated]

    def all_answered(self) -> bool:
        return all(p.has_answered for p in self.eligible_players())

    def set_timer(self, task) -> None:
        """Own ``task`` as the room's only pending task, cancelling any prior one."""
        self.cancel_timer()
        self.timer = task

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def to_dict(self):
        return {
            'code': self.code,
            'status': self.status,
            'stage': self.stage,
            'settings': self.settings.to_dict(),
            'timeLimit': self.time_limit,
            'players': [p.to_dict() for p in self.players.values()],
            'currentQuestion': self.current_question_index + 1 if self.current_question_index >= 0 else None,
            'totalQuestions': len(self.questions),
            'stageDeadline': self.stage_deadline,
        }
