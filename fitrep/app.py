#The code is according to PEP 8 coding styles standards
import logging
from threading import Lock
from typing import Optional

from flask import Flask, jsonify, request

from fitrep.config import Settings
from fitrep.exceptions import (FitRepError, InvalidFrameError,
                               InvalidPlanError, InvalidThresholdsError)
from fitrep.frame_source import MediaPipePoseSource, decode_image
from fitrep.keypoints import keypoint_frame_from_json
from fitrep.models import ThresholdSet, WorkoutMode, WorkoutPlan
from fitrep.presets import PRESET_WORKOUTS, get_preset
from fitrep.recipes import EXERCISE_RECIPES
from fitrep.session import WorkoutSession

logger = logging.getLogger("FitRepApp")


def create_app(settings: Optional[Settings] = None) -> Flask:
    """Build the Flask application.

    Args:
        settings: Configuration; read from the environment when omitted

    Returns:
        Configured Flask app. Sessions live in app.extensions['fitrep'].
    """
    settings = settings or Settings.from_env()
    app = Flask(__name__)

    # Session-specific state keyed by X-Session-ID, one writer at a time
    sessions = {}
    session_lock = Lock()
    pose_source = {}
    app.extensions['fitrep'] = {
        'settings': settings,
        'sessions': sessions,
        'pose_source': pose_source,
    }

    def current_session() -> WorkoutSession:
        session_id = request.headers.get('X-Session-ID', 'default')
        if session_id not in sessions:
            logger.info("Creating session %s", session_id)
            sessions[session_id] = WorkoutSession(settings)
        return sessions[session_id]

    def json_body() -> dict:
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}

    @app.route('/frames', methods=['POST'])
    def post_frame():
        """
        Feed one keypoint frame from the on-device pose detector.

        Expects:
            JSON with the frame under 'keypoints' (list of keypoint objects
            or object keyed by landmark id). Missing means no body detected.

        Returns:
            JSON session update: repCount, state, isVisible,
            calibrationMessage and workout progress
        """
        frame = keypoint_frame_from_json(json_body().get('keypoints'))
        with session_lock:
            update = current_session().handle_frame(frame)
        return jsonify(update.to_dict())

    @app.route('/process_frame', methods=['POST'])
    def process_frame():
        """
        Run server-side pose detection on a base64 image, then as /frames.
        """
        image = json_body().get('image')
        if not isinstance(image, str) or not image:
            raise InvalidFrameError("image must be a base64 string")
        frame_bgr = decode_image(image)

        with session_lock:
            if 'source' not in pose_source:
                pose_source['source'] = MediaPipePoseSource()
            frame = pose_source['source'].detect(frame_bgr)
            update = current_session().handle_frame(frame)
        return jsonify(update.to_dict())

    @app.route('/state', methods=['GET'])
    def get_state():
        with session_lock:
            update = current_session().snapshot()
        return jsonify(update.to_dict())

    @app.route('/exercises', methods=['GET'])
    def list_exercises():
        return jsonify([recipe.to_dict() for recipe in EXERCISE_RECIPES.values()])

    @app.route('/exercise', methods=['POST'])
    def select_exercise():
        name = json_body().get('exercise', '')
        with session_lock:
            update = current_session().select_exercise(name)
        return jsonify(update.to_dict())

    @app.route('/calibration/start', methods=['POST'])
    def start_calibration():
        with session_lock:
            session = current_session()
            started = session.start_calibration()
            update = session.snapshot()
        return jsonify({'started': started, **update.to_dict()})

    @app.route('/calibration/cancel', methods=['POST'])
    def cancel_calibration():
        with session_lock:
            session = current_session()
            cancelled = session.cancel_calibration()
            update = session.snapshot()
        return jsonify({'cancelled': cancelled, **update.to_dict()})

    @app.route('/thresholds', methods=['GET'])
    def get_thresholds():
        with session_lock:
            session = current_session()
            thresholds = {
                name.value: session.thresholds_for(name).to_dict()
                for name in EXERCISE_RECIPES
            }
        return jsonify(thresholds)

    @app.route('/thresholds', methods=['PUT'])
    def put_thresholds():
        """
        Install thresholds restored from an external store.

        Expects:
            JSON {exercise, upAngle, downAngle}
        """
        body = json_body()
        try:
            thresholds = ThresholdSet(up_angle=float(body['upAngle']),
                                      down_angle=float(body['downAngle']))
        except (KeyError, TypeError, ValueError):
            raise InvalidThresholdsError("upAngle and downAngle must be numbers") from None
        with session_lock:
            current_session().set_thresholds(body.get('exercise', ''), thresholds)
        return jsonify(thresholds.to_dict())

    @app.route('/reset', methods=['POST'])
    def reset_counter():
        with session_lock:
            session = current_session()
            reset = session.reset_counter()
            update = session.snapshot()
        return jsonify({'reset': reset, **update.to_dict()})

    @app.route('/presets', methods=['GET'])
    def list_presets():
        return jsonify([plan.to_dict() for plan in PRESET_WORKOUTS])

    @app.route('/workout', methods=['POST'])
    def start_workout():
        """
        Start a preset or custom workout, or return to freestyle.

        Expects:
            JSON with 'mode' ('preset', 'custom' or 'freestyle') and either
            'planId' (preset) or 'plan' (custom plan object).
        """
        body = json_body()
        try:
            mode = WorkoutMode(body.get('mode', WorkoutMode.PRESET.value))
        except ValueError:
            raise InvalidPlanError(f"Unknown workout mode: {body.get('mode')!r}") from None

        with session_lock:
            session = current_session()
            if mode is WorkoutMode.FREESTYLE:
                update = session.start_freestyle()
            elif mode is WorkoutMode.PRESET:
                update = session.start_workout(get_preset(str(body.get('planId', ''))), mode)
            else:
                update = session.start_workout(WorkoutPlan.from_dict(body.get('plan')), mode)
        return jsonify(update.to_dict())

    @app.route('/workout/advance', methods=['POST'])
    def advance_workout():
        with session_lock:
            session = current_session()
            advanced = session.advance_workout_step()
            update = session.snapshot()
        return jsonify({'advanced': advanced, **update.to_dict()})

    @app.route('/session', methods=['DELETE'])
    def close_session():
        """
        End the caller's session and cancel its pending timers.

        Returns:
            JSON {closed}: False if there was no such session
        """
        session_id = request.headers.get('X-Session-ID', 'default')
        with session_lock:
            session = sessions.pop(session_id, None)
            if session is not None:
                logger.info("Closing session %s", session_id)
                session.close()
        return jsonify({'closed': session is not None})

    @app.errorhandler(FitRepError)
    def handle_fitrep_error(e):
        """Return client errors as JSON with their status code."""
        logger.info("Rejected request to %s: %s", request.path, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(500)
    def handle_server_error(e):
        """
        Global error handler for unhandled internal server errors (HTTP 500).
        """
        return jsonify({
            'error': 'Internal server error',
            'message': str(e)
        }), 500

    return app


def close_app(app: Flask) -> None:
    """Close every session and release the MediaPipe model if it was loaded."""
    state = app.extensions['fitrep']
    for session in state['sessions'].values():
        session.close()
    state['sessions'].clear()
    source = state['pose_source'].pop('source', None)
    if source is not None:
        source.close()


def main() -> None:
    app_settings = Settings.from_env()
    logging.basicConfig(level=app_settings.log_level)
    app = create_app(app_settings)
    try:
        # Run server on 0.0.0.0 to allow external access (e.g., mobile testing)
        app.run(host='0.0.0.0', port=app_settings.port)
    finally:
        close_app(app)


# App entry point
if __name__ == '__main__':
    main()
