import logging

from quizclash import create_app, db, socketio

app = create_app()
logging.basicConfig(
    level=app.config.get('LOG_LEVEL', 'INFO'),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

if __name__ == '__main__':
    try:
        # Use SocketIO server to enable websockets in dev
        socketio.run(app, host=app.config['HOST'], port=app.config['PORT'])
    finally:
        # Let in-flight store calls finish before the engine goes away
        app.extensions['quiz_rooms'].dispatcher.shutdown(app.config.get('SHUTDOWN_DRAIN_SEC'))
        with app.app_context():
            db.engine.dispose()
        app.logger.info("[shutdown] quizclash server stopped")
