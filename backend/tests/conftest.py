import heapq
import itertools
import os
import sys
import pytest

# Ensure the backend root (containing the `pokequiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from pokequiz import create_app, socketio
from pokequiz.models import GameMode, IdentityQuestion, MODE_RULES, InputMode, Subject, TextIdentityQuestion
from pokequiz.services.games.timers import ScheduledTask


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['*']
    MAX_PLAYERS = 10
    ROUND_BUFFER_SEC = 0.5
    RESULTS_DURATION_SEC = 6
    LEADERBOARD_DURATION_SEC = 5
    FINAL_SCREEN_DURATION_SEC = 20
    TIMER_HEARTBEAT_SEC = 0
    POKEAPI_BASE_URL = 'http://pokeapi.test/api/v2'
    POKEAPI_TIMEOUT_SEC = 1
    POKEAPI_LANGUAGE = 'en'
    PRELOAD_GENERATIONS = [1]


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ManualScheduler:
    """Scheduler driven by the fake clock: tasks run only when time is advanced."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self._queue = []
        self._seq = itertools.count()

    def schedule(self, delay, callback, *args):
        task = ScheduledTask(label=getattr(callback, '__name__', 'task'))
        heapq.heappush(self._queue, (self.clock.now + delay, next(self._seq), task, callback, args))
        return task

    def pending(self):
        return [entry[2] for entry in self._queue if not entry[2].cancelled]

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, task, callback, args = heapq.heappop(self._queue)
            if task.cancelled:
                continue
            self.clock.now = max(self.clock.now, due)
            callback(*args)
        self.clock.now = target


NAMES = ['Pikachu', 'Bulbasaur', 'Charmander', 'Squirtle', 'Eevee', 'Mew']


class StaticContent:
    """Deterministic content provider: question i is about NAMES[i % len(NAMES)]."""

    def __init__(self) -> None:
        self.calls = []

    def load_generations(self, generations):
        pass

    def species_count(self, generation):
        return 151

    def generate_questions(self, count, mode=GameMode.CLASSIC, generations=None):
        self.calls.append((count, mode, list(generations or [])))
        deck = []
        for i in range(count):
            name = NAMES[i % len(NAMES)]
            subject = Subject(dex_id=i + 1, name=name)
            if MODE_RULES[mode].input_mode == InputMode.TEXT:
                deck.append(TextIdentityQuestion(subject=subject, prompt='Who is this Pokémon?', answer=name))
            else:
                options = tuple([name] + [n for n in NAMES if n != name][:3])
                deck.append(IdentityQuestion(subject=subject, prompt='Who is this Pokémon?',
                                             answer=name, options=options))
        return deck


class RecordingSocketIO:
    """Stands in for the Socket.IO server and keeps every emitted message."""

    def __init__(self) -> None:
        self.sent = []

    def emit(self, event, data=None, to=None, namespace=None):
        self.sent.append({'event': event, 'data': data, 'to': to})

    def events(self, name):
        return [m['data'] for m in self.sent if m['event'] == name]

    def names(self):
        return [m['event'] for m in self.sent]


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture()
def content():
    return StaticContent()


@pytest.fixture()
def flask_app(content, scheduler, clock):
    application = create_app(TestConfig, content_provider=content, scheduler=scheduler, clock=clock)
    with application.app_context():
        yield application


@pytest.fixture()
def registry(flask_app):
    return flask_app.extensions['pokequiz.registry']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
