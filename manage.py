from collabotree import create_app
from collabotree.extensions import socketio

app = create_app()

if __name__ == '__main__':
    socketio.run(app, host='0.0.0.0', port=int(app.config.get('PORT', 5000)), debug=app.debug)
