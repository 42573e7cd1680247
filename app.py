from flask import Flask, jsonify
from flask.cli import AppGroup
from flask_migrate import Migrate
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
import click
import os
from models import db
from routes.auth import auth_bp
from routes.songs import songs_bp
from routes.sounding_board import sounding_board_bp
from routes.discussion import discussion_bp
from routes.feedback import feedback_bp
from services.errors import SongSlabError
from services.membership import link_members_to_users
from services.topics import seed_feedback_topics
from utils.auth import bcrypt

### LOAD ENVIRONMENT VARIABLES ######################
load_dotenv()

migrate = Migrate()


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name, default):
    value = os.getenv(name)
    return int(value) if value else default


def load_config(app):
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv("DATABASE_URL", "sqlite:///songslab.db")
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.secret_key = os.getenv("FLASK_SECRET_KEY", "fallbackkey")

    # sounding board policy
    app.config['AUTO_APPROVE_MEMBERSHIP'] = _env_flag("AUTO_APPROVE_MEMBERSHIP", False)
    app.config['CONTENT_FILTER_BLOCK_PROFANITY'] = _env_flag("CONTENT_FILTER_BLOCK_PROFANITY", True)
    app.config['FRONTEND_URL'] = os.getenv("FRONTEND_URL", "http://localhost:3004")

    # auth
    app.config['TOKEN_TTL_HOURS'] = _env_int("TOKEN_TTL_HOURS", 24)
    app.config['BCRYPT_LOG_ROUNDS'] = _env_int("BCRYPT_LOG_ROUNDS", 12)

    # mail
    app.config['MAIL_SERVER'] = os.getenv("MAIL_SERVER", "smtp.gmail.com")
    app.config['MAIL_PORT'] = _env_int("MAIL_PORT", 587)
    app.config['MAIL_USERNAME'] = os.getenv("MAIL_USERNAME")
    app.config['MAIL_PASSWORD'] = os.getenv("MAIL_PASSWORD")
    app.config['MAIL_FROM'] = os.getenv("MAIL_FROM")
    app.config['MAIL_TIMEOUT'] = _env_int("MAIL_TIMEOUT", 10)
    app.config['MAIL_SUPPRESS_SEND'] = _env_flag("MAIL_SUPPRESS_SEND", False)


### ERROR HANDLERS ######################
def register_error_handlers(app):

    @app.errorhandler(SongSlabError)
    def handle_songslab_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        db.session.rollback()
        app.logger.exception("Database error: %s", e)
        return jsonify({"error": "A database error occurred."}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code


### CLI COMMANDS ######################
soundingboard_cli = AppGroup("soundingboard", help="Sounding board maintenance.")

@soundingboard_cli.command("link")
@click.option("--email", default=None, help="Only link memberships for this email.")
def link_command(email):
    """Link sounding board members to registered users by email."""
    linked = link_members_to_users(email=email.strip().lower() if email else None)
    click.echo(f"Linked {linked} sounding board member(s).")


topics_cli = AppGroup("topics", help="Feedback topic maintenance.")

@topics_cli.command("seed")
def seed_command():
    """Insert or refresh the default feedback topics."""
    inserted = seed_feedback_topics()
    click.echo(f"Seeded feedback topics ({inserted} new).")


### APP FACTORY ######################
def create_app(test_config=None):
    app = Flask(__name__)
    load_config(app)
    if test_config:
        app.config.update(test_config)

    db.init_app(app)
    migrate.init_app(app, db)
    bcrypt.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(songs_bp)
    app.register_blueprint(sounding_board_bp)
    app.register_blueprint(discussion_bp)
    app.register_blueprint(feedback_bp)

    register_error_handlers(app)
    app.cli.add_command(soundingboard_cli)
    app.cli.add_command(topics_cli)

    @app.route("/ping")
    def ping():
        return "pong"

    return app


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
    app.run(debug=True, host="0.0.0.0", port=5001)
