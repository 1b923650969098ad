from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import logging
from config import Config
from planning_poker.services.poker import RoomCoordinator

socketio = SocketIO(async_mode=None)


def get_coordinator(app) -> RoomCoordinator:
    return app.extensions['room_coordinator']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    level = flask_app.config.get('LOG_LEVEL', 'INFO')
    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger('planning_poker').setLevel(level)
    flask_app.logger.setLevel(level)

    allowed_origins = flask_app.config.get('CORS_ORIGINS', [])
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # One coordinator per app; it owns every room for the life of the process
    flask_app.extensions['room_coordinator'] = RoomCoordinator()

    from planning_poker.main import main
    flask_app.register_blueprint(main)

    from planning_poker.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from planning_poker.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/'))

    return flask_app
