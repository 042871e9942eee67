import logging

from flask import Flask, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from config import Config

csrf = CSRFProtect()


def _configure_logging(level_name):
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        root.addHandler(handler)
    root.setLevel(getattr(logging, str(level_name).upper(), logging.INFO))


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    _configure_logging(app.config.get('LOG_LEVEL', 'INFO'))

    csrf.init_app(app)

    @app.errorhandler(CSRFError)
    def csrf_error(e):
        return jsonify({'error': e.description}), 400

    if app.config.get('FIREBASE_ENABLED', True):
        from testprep.firebase_init import init_firebase
        init_firebase(app.config)

    # Register current_user loader
    from testprep.decorators import load_current_user

    @app.before_request
    def before_request():
        load_current_user()

    from testprep.routes import (
        auth, main, admin, catalog, questions, tests, test_series
    )
    app.register_blueprint(auth.bp)
    app.register_blueprint(main.bp)
    app.register_blueprint(admin.bp)
    app.register_blueprint(catalog.bp)
    app.register_blueprint(questions.bp)
    app.register_blueprint(tests.bp)
    app.register_blueprint(test_series.bp)

    logging.getLogger(__name__).info("Application created with %s", config_class.__name__)
    return app
