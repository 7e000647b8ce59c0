from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, content_provider=None, scheduler=None, clock=None):
    """Build the Flask app and its game services.

    The registry and orchestrator are created here and hung off
    ``app.extensions`` so each app (and each test) gets its own rooms.
    """
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    origins = flask_app.config.get('CORS_ORIGINS') or ['*']
    if '*' in origins:
        origins = '*'
    CORS(flask_app, supports_credentials=True, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from pokequiz.services.content.pokeapi import PokeApiClient, SpeciesPool
    from pokequiz.services.content.questions import PokemonQuizContent
    from pokequiz.services.games.orchestrator import RoundOrchestrator
    from pokequiz.services.games.registry import SessionRegistry
    from pokequiz.services.games.timers import SocketIOScheduler

    if content_provider is None:
        client = PokeApiClient(
            base_url=flask_app.config['POKEAPI_BASE_URL'],
            timeout=flask_app.config['POKEAPI_TIMEOUT_SEC'],
            language=flask_app.config['POKEAPI_LANGUAGE'],
        )
        content_provider = PokemonQuizContent(SpeciesPool(client))

    registry_kwargs = {'max_players': int(flask_app.config.get('MAX_PLAYERS', 10))}
    if clock is not None:
        registry_kwargs['clock'] = clock
    registry = SessionRegistry(content_provider, **registry_kwargs)
    orchestrator = RoundOrchestrator(
        flask_app,
        registry,
        socketio,
        scheduler or SocketIOScheduler(flask_app, socketio),
    )
    flask_app.extensions['pokequiz.content'] = content_provider
    flask_app.extensions['pokequiz.registry'] = registry
    flask_app.extensions['pokequiz.orchestrator'] = orchestrator

    from pokequiz.main import main
    flask_app.register_blueprint(main)

    from pokequiz.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    # Register Socket.IO event handlers on the shared socketio instance
    from pokequiz.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    return flask_app
