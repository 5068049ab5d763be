# chatdesk/__init__.py
# -*- coding: utf-8 -*-
"""Main application package setup."""

import os
import logging
from flask import Flask, jsonify, abort, request, g
from sqlalchemy import event

# Import configurations and extensions
from .config import config
from .extensions import db, migrate, bcrypt, login_manager
from .providers import init_registry
from .utils.exceptions import ServiceError


def _enable_sqlite_savepoints(engine):
    """
    Let pysqlite honour SAVEPOINT.

    The driver opens transactions lazily and silently drops savepoints, which
    breaks the nested writes used for contact dedup and message mirroring.
    Hand transaction control back to SQLAlchemy instead.
    """
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_app(config_name=None):
    """
    Create and configure an instance of the Flask application using the App Factory pattern.

    Args:
        config_name (str, optional): The name of the configuration to use ('development', 'testing', 'production').
                                     Defaults to FLASK_ENV environment variable or 'default'.

    Returns:
        Flask: The configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'default')
        if config_name not in config:
            print(f"WARNING: Invalid FLASK_ENV '{config_name}', defaulting to 'development'.")
            config_name = 'development'

    app = Flask(__name__)

    try:
        app.config.from_object(config[config_name])
        config[config_name].init_app(app)
        print(f"INFO: App created with configuration: '{config_name}'")
    except KeyError:
        print(f"ERROR: Configuration '{config_name}' not found. Check config.py.")
        raise ValueError(f"Invalid configuration name: {config_name}")

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)
    login_manager.init_app(app)
    init_registry(app)

    with app.app_context():
        if db.engine.dialect.name == 'sqlite':
            _enable_sqlite_savepoints(db.engine)

    log_level_name = (app.config.get('LOG_LEVEL') or ('DEBUG' if app.debug else 'INFO')).upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    app.logger.setLevel(log_level)
    for handler in app.logger.handlers:
        handler.setLevel(log_level)
    app.logger.info(f"Flask logger initialized with level: {log_level_name}")

    # --- Register Blueprints ---
    # Authentication
    from .api.routes.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    # Provider webhooks (token-protected, no user session)
    from .api.routes.webhooks import webhooks_bp
    app.register_blueprint(webhooks_bp, url_prefix='/api/webhooks')

    # Admin APIs
    from .api.routes.admin_users import admin_users_bp
    app.register_blueprint(admin_users_bp, url_prefix='/api/admin/users')
    from .api.routes.admin_providers import admin_providers_bp, admin_sender_numbers_bp
    app.register_blueprint(admin_providers_bp, url_prefix='/api/admin/providers')
    app.register_blueprint(admin_sender_numbers_bp, url_prefix='/api/admin/sender-numbers')
    from .api.routes.admin_chatrooms import admin_chatrooms_bp, admin_lines_bp
    app.register_blueprint(admin_chatrooms_bp, url_prefix='/api/admin/chatrooms')
    app.register_blueprint(admin_lines_bp, url_prefix='/api/admin/lines')
    from .api.routes.admin_resources import admin_resources_bp
    app.register_blueprint(admin_resources_bp, url_prefix='/api/admin/resources')

    # Member APIs
    from .api.routes.chatrooms import chatrooms_bp
    app.register_blueprint(chatrooms_bp, url_prefix='/api/chatrooms')
    from .api.routes.messages import messages_bp
    app.register_blueprint(messages_bp, url_prefix='/api/messages')
    from .api.routes.inbox import inbox_bp
    app.register_blueprint(inbox_bp, url_prefix='/api/inbox')
    from .api.routes.resources import resources_bp
    app.register_blueprint(resources_bp, url_prefix='/api/resources')

    # --- Basic Routes & Health Check ---
    @app.route('/health')
    def health_check():
        return {"status": "ok", "message": "Application is running."}, 200

    # --- Configure Flask-Login ---
    @login_manager.unauthorized_handler
    def unauthorized():
        """Handles unauthorized access attempts for @login_required routes."""
        app.logger.debug("Unauthorized access attempt caught by login_manager.")
        abort(401, description="Authentication required to access this resource.")

    @app.teardown_request
    def forget_request_user(exc):
        # Bearer auth is per request; never let a loaded user outlive it
        g.pop('_login_user', None)

    # --- Global HTTP Error Handlers ---
    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(f"Bad Request (400): {error.description}")
        return jsonify(error="BadRequest", message=error.description or "Bad request."), 400

    @app.errorhandler(401)
    def unauthorized_error(error):
        app.logger.warning(f"Unauthorized (401): {error.description}")
        return jsonify(error="Unauthorized", message=error.description or "Unauthorized."), 401

    @app.errorhandler(403)
    def forbidden_error(error):
        app.logger.warning(f"Forbidden (403): {error.description}")
        return jsonify(error="Forbidden", message=error.description or "Forbidden."), 403

    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.info(f"Not Found (404): {error.description} (Path: {request.path})")
        return jsonify(error="NotFound", message=error.description or "Resource not found."), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify(error="MethodNotAllowed", message=error.description or "Method not allowed."), 405

    @app.errorhandler(409)
    def conflict_error(error):
        app.logger.warning(f"Conflict (409): {error.description}")
        return jsonify(error="Conflict", message=error.description or "Conflict."), 409

    @app.errorhandler(500)
    def internal_error(error):
        original_exception = getattr(error, "original_exception", error)
        app.logger.error(f"Internal Server Error (500): {error.description}", exc_info=original_exception)
        try:
            db.session.rollback()
            app.logger.info("Rolled back database session due to 500 error.")
        except Exception as rb_err:
            app.logger.error(f"Error during automatic rollback after 500 error: {rb_err}", exc_info=True)
        return jsonify(error="InternalServerError", message=error.description or "Internal server error."), 500

    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        # Routes translate their own service errors; this covers the rest
        app.logger.warning(f"Unhandled service error ({error.status_code}): {error}")
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    # --- Shell Context Processor ---
    @app.shell_context_processor
    def make_shell_context():
        from .database import models
        from . import services
        return {'db': db, 'models': models, 'services': services}

    return app
