from pokequiz import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Warm the species cache so the first game does not wait on PokeAPI
    content = app.extensions['pokequiz.content']
    socketio.start_background_task(content.load_generations, app.config['PRELOAD_GENERATIONS'])
    socketio.run(app, host='0.0.0.0', debug=True)
