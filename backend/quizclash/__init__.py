from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
# Events of one connection run inline, in arrival order
socketio = SocketIO(async_mode=None, async_handlers=False)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from quizclash.main import main
    flask_app.register_blueprint(main)

    # Process-scoped room state: registry, ledger and dispatcher live as long as the app
    from quizclash.services.rooms import build_room_services
    flask_app.extensions['quiz_rooms'] = build_room_services(
        max_attempts=flask_app.config.get('SCORE_MAX_ATTEMPTS', 5),
    )

    # Importing here ensures the handlers bind to the initialized socketio instance
    from quizclash.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the player score table."""
        import quizclash.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            click.echo('Database has been reset!')

    @click.command('purge-room')
    @click.argument('room')
    def purge_room_command(room):
        """Deletes every player score record of ROOM."""
        services = flask_app.extensions['quiz_rooms']
        with flask_app.app_context():
            removed = services.ledger.purge_room(room)
        click.echo(f'Removed {removed} player(s) from room {room}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(purge_room_command)

    return flask_app
