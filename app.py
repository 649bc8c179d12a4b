#!/usr/bin/env python3
"""
Xtream helper services - application entry point

Configures the Flask app, database and shared services, and registers the
CLI commands:
  - flask init-db      - create tables
  - flask xtream-test  - probe a playlist's Xtream provider
  - flask external-ip  - print this host's public IP
"""

import json
import logging
import os

import click
from flask import Flask

from models import Playlist, db
from services.cache_service import CacheService
from services.external_ip_service import ExternalIpService
from services.xtream_service import (
    DEFAULT_USER_AGENT,
    FromPlaylist,
    InitFailure,
    XtreamError,
    initialize,
)

# Initialize Flask app
app = Flask(__name__)
app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL", "sqlite:////app/data/xtream.db")
app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")

# Xtream client settings
app.config["XTREAM_RETRY_LIMIT"] = int(os.getenv("XTREAM_RETRY_LIMIT", "5"))
app.config["XTREAM_RETRY_DELAY"] = float(os.getenv("XTREAM_RETRY_DELAY", "1"))
app.config["XTREAM_TIMEOUT"] = float(os.getenv("XTREAM_TIMEOUT", "10"))
app.config["XTREAM_USER_AGENT"] = os.getenv("XTREAM_USER_AGENT", DEFAULT_USER_AGENT)
app.config["CACHE_TTL"] = int(os.getenv("CACHE_TTL", "3600"))
app.config["EXTERNAL_IP_CACHE_TTL"] = int(os.getenv("EXTERNAL_IP_CACHE_TTL", "3600"))

# Initialize extensions
db.init_app(app)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Shared services
cache = CacheService(default_ttl=app.config["CACHE_TTL"])
external_ip_service = ExternalIpService(cache, ttl=app.config["EXTERNAL_IP_CACHE_TTL"])


def build_xtream_service(playlist):
    """Build an Xtream client for a playlist using the app's configured settings"""
    return initialize(
        FromPlaylist(playlist),
        retry_limit=app.config["XTREAM_RETRY_LIMIT"],
        user_agent=app.config["XTREAM_USER_AGENT"],
        retry_delay=app.config["XTREAM_RETRY_DELAY"],
        timeout=app.config["XTREAM_TIMEOUT"],
    )


# ============================================================================
# CLI Commands
# ============================================================================


@app.cli.command()
def init_db():
    """Initialize the database"""
    db.create_all()
    print("Database initialized!")


@app.cli.command("xtream-test")
@click.argument("playlist_id", type=int)
@click.option(
    "--action",
    type=click.Choice(["info", "auth", "live", "movies", "series"]),
    default="auth",
    show_default=True,
)
@click.option("--category", "category_id", default=None, help="Category id for live/movies/series listings")
def xtream_test(playlist_id, action, category_id):
    """Test connection to a playlist's Xtream provider"""
    playlist = db.session.get(Playlist, playlist_id)
    if playlist is None:
        raise click.ClickException("Playlist not found.")

    service = build_xtream_service(playlist)
    if service is InitFailure.CONFIGURATION_MISMATCH:
        raise click.ClickException("Playlist is not Xtream enabled.")
    if isinstance(service, InitFailure):
        raise click.ClickException("Xtream service initialization failed.")

    click.echo(f"Connecting to: {service.session.base_url}...")

    try:
        if action == "info":
            result = service.user_info()
        elif action == "auth":
            result = service.authenticate()
            if not result.get("auth"):
                raise click.ClickException("Authentication failed.")
        elif action == "live":
            result = service.get_live_streams(category_id) if category_id else service.get_live_categories()
        elif action == "movies":
            result = service.get_vod_streams(category_id) if category_id else service.get_vod_categories()
        else:
            result = service.get_series(category_id) if category_id else service.get_series_categories()
    except XtreamError as e:
        logger.error(f"Xtream test for playlist {playlist_id} failed: {e}")
        raise click.ClickException(str(e))

    click.echo(json.dumps(result, indent=2))


@app.cli.command("external-ip")
@click.option("--refresh", is_flag=True, help="Drop the cached address first")
def external_ip(refresh):
    """Print this host's external IP (falls back to the local address)"""
    if refresh:
        external_ip_service.clear_cache()
    click.echo(external_ip_service.get_external_ip_with_fallback())


# ============================================================================
# Application Entry Point
# ============================================================================


if __name__ == "__main__":
    with app.app_context():
        db.create_all()
    logger.info("Database ready. Use `flask --app app xtream-test <playlist_id>` to probe a provider.")
