import os


def _list(value):
    return [item.strip() for item in value.split(',') if item.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma separated; '*' allows any origin (phones join over the LAN)
    CORS_ORIGINS = _list(os.environ.get('CORS_ORIGINS', '*'))
    MAX_PLAYERS = int(os.environ.get('MAX_PLAYERS', '10'))
    # Round pipeline timers (seconds)
    ROUND_BUFFER_SEC = float(os.environ.get('ROUND_BUFFER_SEC', '0.5'))
    RESULTS_DURATION_SEC = float(os.environ.get('RESULTS_DURATION_SEC', '6'))
    LEADERBOARD_DURATION_SEC = float(os.environ.get('LEADERBOARD_DURATION_SEC', '5'))
    # Final screen hold time before the room is dropped (seconds)
    FINAL_SCREEN_DURATION_SEC = float(os.environ.get('FINAL_SCREEN_DURATION_SEC', '20'))
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = float(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    # Question content
    POKEAPI_BASE_URL = os.environ.get('POKEAPI_BASE_URL', 'https://pokeapi.co/api/v2')
    POKEAPI_TIMEOUT_SEC = float(os.environ.get('POKEAPI_TIMEOUT_SEC', '10'))
    POKEAPI_LANGUAGE = os.environ.get('POKEAPI_LANGUAGE', 'fr')
    PRELOAD_GENERATIONS = [int(g) for g in _list(os.environ.get('PRELOAD_GENERATIONS', '1'))]
