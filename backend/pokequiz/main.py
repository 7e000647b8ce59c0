from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Pokéquiz game server!'})


@main.route('/healthz')
def healthz():
    registry = current_app.extensions['pokequiz.registry']
    return jsonify({'status': 'ok', 'rooms': len(registry.rooms())})
