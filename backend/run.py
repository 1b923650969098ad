import os
from planning_poker import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Dev server; the Socket.IO runner picks eventlet/gevent when installed
    socketio.run(
        app,
        host=os.environ.get('HOST', '127.0.0.1'),
        port=int(os.environ.get('PORT', '5000')),
        debug=app.config.get('LOG_LEVEL') == 'DEBUG',
        allow_unsafe_werkzeug=True,
    )
