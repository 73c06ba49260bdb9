#!/usr/bin/env python3
"""
Try-On Studio - Web Application
Flask server with WebSocket support for real-time loading updates
"""

import logging
import sys

from flask import Blueprint, Flask, current_app, jsonify, render_template, request
from flask_cors import CORS
from flask_socketio import SocketIO, emit
from werkzeug.exceptions import RequestEntityTooLarge

from models.schemas import BodyDirection, GenerationProgress, ScreenStatus
from services.config import Settings
from services.errors import MalformedInputError
from services.gemini_generator import GenerationClient
from services.image_codec import prepare_upload, read_file_storage
from services.session_manager import SessionManager

logger = logging.getLogger(__name__)

socketio = SocketIO()

api = Blueprint('api', __name__)

# Error kind -> HTTP status for a screen that ended in ERROR
ERROR_STATUS_CODES = {
    'MalformedInputError': 400,
    'InitializationError': 503,
}


def get_session_manager() -> SessionManager:
    return current_app.extensions['tryon_sessions']


def make_progress_callback():
    """Emit progress updates to the Socket.IO client named in X-Socket-ID, if any"""
    socket_sid = request.headers.get('X-Socket-ID')
    if not socket_sid:
        return None

    def emit_progress(step, message, percent):
        progress = GenerationProgress(step=step, message=message, progress_percent=percent)
        socketio.emit('progress', progress.to_dict(), to=socket_sid)

    return emit_progress


def session_or_404(session_id):
    session = get_session_manager().get_session(session_id)
    if session is None:
        return None, (jsonify({'error': 'Session not found or expired'}), 404)
    session.touch()
    return session, None


def action_response(session, screen, accepted):
    """Build the JSON reply after a screen action"""
    snapshot = session.to_dict()

    if not accepted:
        return jsonify({
            'success': False,
            'error': 'Request ignored: another request is in progress or the screen is not ready',
            'session': snapshot,
        }), 409

    if screen.status is ScreenStatus.ERROR:
        return jsonify({
            'success': False,
            'error': screen.error,
            'error_kind': screen.error_kind,
            'retry': True,
            'session': snapshot,
        }), ERROR_STATUS_CODES.get(screen.error_kind, 502)

    return jsonify({'success': True, 'session': snapshot})


@api.route('/')
def index():
    """Serve the main page"""
    return render_template('index.html')


@api.route('/api/session', methods=['POST'])
def create_session():
    """Create a new studio session (or resume one passed as session_id)"""
    data = request.get_json(silent=True) or {}
    session, is_new = get_session_manager().get_or_create_session(data.get('session_id') or None)
    body = {'success': True, 'is_new_session': is_new, 'session': session.to_dict()}
    return jsonify(body), 201 if is_new else 200


@api.route('/api/session/<session_id>', methods=['GET'])
def get_session_info(session_id):
    """Get the current state of a session"""
    session, error = session_or_404(session_id)
    if error:
        return error
    return jsonify({'success': True, 'session': session.to_dict()})


@api.route('/api/session/<session_id>/photo', methods=['POST'])
def upload_photo(session_id):
    """
    Upload the user's photo and generate the model image

    Accepts:
        - photo: Image file (multipart)
    """
    session, error = session_or_404(session_id)
    if error:
        return error

    upload = read_file_storage(request.files.get('photo'), image_type="photo")
    if upload is None:
        return jsonify({'error': 'No photo provided'}), 400

    accepted = session.start.select_photo(upload, progress_callback=make_progress_callback())
    return action_response(session, session.start, accepted)


@api.route('/api/session/<session_id>/adjust', methods=['POST'])
def adjust_body(session_id):
    """
    Adjust the generated model's physique

    Accepts:
        - direction: "more" or "less" (JSON or form)
    """
    session, error = session_or_404(session_id)
    if error:
        return error

    data = request.get_json(silent=True) or request.form
    direction = (data.get('direction') or '').strip().lower()
    if direction not in {d.value for d in BodyDirection}:
        return jsonify({'error': "direction must be 'more' or 'less'"}), 400

    accepted = session.start.adjust_body(direction, progress_callback=make_progress_callback())
    return action_response(session, session.start, accepted)


@api.route('/api/session/<session_id>/reset', methods=['POST'])
def reset_start(session_id):
    """Discard the photo and model and return to the upload prompt"""
    session, error = session_or_404(session_id)
    if error:
        return error
    session.start.reset()
    return jsonify({'success': True, 'session': session.to_dict()})


@api.route('/api/session/<session_id>/finalize', methods=['POST'])
def finalize_model(session_id):
    """Proceed to styling with the generated model"""
    session, error = session_or_404(session_id)
    if error:
        return error

    if not session.proceed_to_styling():
        return jsonify({
            'success': False,
            'error': 'No finished model to style yet',
            'session': session.to_dict(),
        }), 409
    return jsonify({'success': True, 'session': session.to_dict()})


@api.route('/api/session/<session_id>/pose', methods=['POST'])
def change_pose(session_id):
    """
    Re-pose the model on the canvas

    Accepts:
        - instruction: Free-text pose description (JSON or form)
    """
    session, error = session_or_404(session_id)
    if error:
        return error

    data = request.get_json(silent=True) or request.form
    instruction = (data.get('instruction') or '').strip()
    if not instruction:
        return jsonify({'error': 'Please describe a pose'}), 400

    accepted = session.canvas.select_pose(instruction, progress_callback=make_progress_callback())
    return action_response(session, session.canvas, accepted)


@api.route('/api/session/<session_id>/wardrobe', methods=['POST'])
def add_garment(session_id):
    """
    Upload a garment into the session wardrobe

    Accepts:
        - garment: Image file (multipart)
        - name: Optional display name
    """
    session, error = session_or_404(session_id)
    if error:
        return error

    upload = read_file_storage(request.files.get('garment'), image_type="garment")
    if upload is None:
        return jsonify({'error': 'No garment image provided'}), 400

    item = session.wardrobe.add(prepare_upload(upload), name=request.form.get('name'))
    logger.info("Session %s added wardrobe item %s (%s)", session.session_id, item.id, item.name)
    return jsonify({'success': True, 'item': item.to_dict(), 'session': session.to_dict()}), 201


@api.route('/api/session/<session_id>/wardrobe/<item_id>', methods=['DELETE'])
def remove_garment(session_id, item_id):
    """Remove a garment from the session wardrobe"""
    session, error = session_or_404(session_id)
    if error:
        return error

    if not session.wardrobe.remove(item_id):
        return jsonify({'error': 'Wardrobe item not found'}), 404
    return jsonify({'success': True, 'session': session.to_dict()})


@api.route('/api/session/<session_id>/try-on', methods=['POST'])
def try_on_garment(session_id):
    """
    Apply a garment to the model on the canvas

    Accepts either:
        - item_id: Id of a wardrobe item (JSON or form)
        - garment: A new garment image (multipart), added to the wardrobe first
    """
    session, error = session_or_404(session_id)
    if error:
        return error

    upload = read_file_storage(request.files.get('garment'), image_type="garment")
    if upload is not None:
        item = session.wardrobe.add(prepare_upload(upload), name=request.form.get('name'))
    else:
        data = request.get_json(silent=True) or request.form
        item_id = data.get('item_id')
        if not item_id:
            return jsonify({'error': 'Provide item_id or a garment image'}), 400
        item = session.wardrobe.get(item_id)
        if item is None:
            return jsonify({'error': 'Wardrobe item not found'}), 404

    accepted = session.canvas.try_on(item, progress_callback=make_progress_callback())
    return action_response(session, session.canvas, accepted)


@api.route('/api/session/<session_id>/start-over', methods=['POST'])
def start_over(session_id):
    """Clear canvas, wardrobe and upload screen"""
    session, error = session_or_404(session_id)
    if error:
        return error
    session.start_over()
    return jsonify({'success': True, 'session': session.to_dict()})


@api.route('/health')
def health():
    """Health check endpoint"""
    sessions = get_session_manager()
    return jsonify({
        'status': 'healthy',
        'api_key_configured': sessions.generator.is_initialized,
        'model': sessions.generator.model,
        'active_sessions': sessions.get_session_count()
    })


@api.app_errorhandler(MalformedInputError)
def handle_malformed_input(e):
    return jsonify({'error': str(e)}), 400


@api.app_errorhandler(RequestEntityTooLarge)
def handle_too_large(e):
    max_mb = current_app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
    return jsonify({'error': f'Upload too large (max {max_mb}MB)'}), 413


# WebSocket event handlers
@socketio.on('connect')
def handle_connect():
    """Handle client connection"""
    logger.info("Client connected: %s", request.sid)
    emit('connected', {'sid': request.sid})


@socketio.on('disconnect')
def handle_disconnect():
    """Handle client disconnection"""
    logger.info("Client disconnected: %s", request.sid)


def create_app(settings=None, generator=None):
    """
    Build the Flask application.

    Args:
        settings: Settings (defaults to Settings.from_env())
        generator: GenerationClient to share across sessions (defaults to one built from settings)
    """
    if settings is None:
        settings = Settings.from_env()
    if generator is None:
        generator = GenerationClient.from_settings(settings)

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = settings.max_upload_mb * 1024 * 1024
    app.config['SECRET_KEY'] = settings.secret_key
    app.config['TRYON_SETTINGS'] = settings

    app.extensions['tryon_sessions'] = SessionManager(
        generator,
        session_timeout_minutes=settings.session_timeout_minutes,
    )

    # Enable CORS
    CORS(app)

    app.register_blueprint(api)
    socketio.init_app(app, cors_allowed_origins="*", async_mode='threading')

    if not generator.is_initialized:
        logger.warning("Starting without a Gemini API key; every generation request will fail until it is set")

    return app


def main():
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = create_app(settings)

    print("🚀 Starting Try-On Studio Web Server with WebSocket support...")
    print(f"📱 Open http://localhost:{settings.port} in your browser")
    if not settings.has_api_key:
        print("⚠️  GOOGLE_API_KEY is not set; generation requests will report an initialization error.")

    socketio.run(app, debug=False, host='0.0.0.0', port=settings.port, allow_unsafe_werkzeug=True)
    return 0


if __name__ == '__main__':
    sys.exit(main())
