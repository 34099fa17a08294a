import os

from flask import Blueprint, current_app, jsonify, send_from_directory

from quizclash.store import StoreError

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return '<h1>Hello world</h1>'


@main.route('/health')
def health():
    rooms = current_app.extensions['quiz_rooms']
    try:
        rooms.ledger.store.ping()
    except StoreError as exc:
        current_app.logger.warning(f"[health] store unavailable: {exc}")
        return jsonify({'status': 'degraded', 'store': 'unavailable'}), 503
    return jsonify({
        'status': 'ok',
        'store': 'ok',
        'active_rooms': len(rooms.registry.rooms()),
        'in_flight_events': rooms.dispatcher.in_flight,
    })


def _send_media(kind, filename):
    response = send_from_directory(
        os.path.join(current_app.config['MEDIA_ROOT'], kind),
        filename,
        max_age=current_app.config.get('STATIC_MAX_AGE_SEC'),
    )
    response.cache_control.immutable = True
    return response


@main.route('/images/<path:filename>')
def images(filename):
    return _send_media('images', filename)


@main.route('/videos/<path:filename>')
def videos(filename):
    return _send_media('videos', filename)
