import logging
import click
from flask import Flask, jsonify
from flask_mail import Mail
from werkzeug.middleware.proxy_fix import ProxyFix

from models import db
from config import Config
from errors import register_error_handlers
from auth import bp as auth_bp, login_manager
from treatments import bp as treatments_bp
from feedback import bp as feedback_bp
from bookkeeping import bp as bookkeeping_bp
from reports import bp as reports_bp
from admin import bp as admin_bp

mail = Mail()


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # DB
    db.init_app(app)

    # Login
    login_manager.init_app(app)

    # Email feedback
    mail.init_app(app)

    register_error_handlers(app)

    # Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(treatments_bp)
    app.register_blueprint(feedback_bp)
    app.register_blueprint(bookkeeping_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(admin_bp)

    # For reverse proxy (nginx)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    @app.route('/')
    def index():
        return jsonify({'success': True, 'name': app.config.get('SALON_NAME')})

    @app.cli.command('init-db')
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Tables created.")

    @app.cli.command('seed')
    @click.option('--no-history', is_flag=True, help='Only reference data, no sample treatments.')
    def seed_command(no_history):
        """Seed reference data (idempotent) and optional sample history."""
        from seed import seed
        db.create_all()
        summary = seed(with_history=not no_history)
        for key, value in summary.items():
            click.echo(f"{key}: {value}")

    @app.cli.command('recompute')
    def recompute_command():
        """Recompute running totals and customer/therapist aggregates."""
        from seed import recompute_all
        rows = recompute_all()
        db.session.commit()
        click.echo(f"Ledger rows recomputed: {rows}")

    return app


app = create_app()
