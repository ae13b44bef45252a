import logging

from flask import Flask
from occupancy.config import DevelopmentConfig
from occupancy.extensions import db, migrate

def create_app(config_class=DevelopmentConfig, clock=None, booking_client=None, space_client=None):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Engine components (clock and collaborator clients are injectable for tests)
    from occupancy.services import OccupancyEngine
    app.extensions['occupancy'] = OccupancyEngine(
        app.config, clock=clock, booking_client=booking_client, space_client=space_client
    )

    # Register Blueprints
    from occupancy.api.routes.sessions import sessions_bp
    from occupancy.api.routes.reservations import reservations_bp

    app.register_blueprint(reservations_bp, url_prefix='/api/reservations')
    app.register_blueprint(sessions_bp, url_prefix='/api/sessions')

    @app.route('/health')
    def health():
        return {"status": "ok", "app": "occupancy"}

    return app
