"""
Database models for Xtream playlists
"""

from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class Playlist(db.Model):  # type: ignore[name-defined]
    """IPTV playlist - Xtream playlists carry provider credentials in xtream_config"""

    __tablename__ = "playlists"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    xtream = db.Column(db.Boolean, default=False, nullable=False)
    # {"url": ..., "username": ..., "password": ..., "fallback_urls": [...]}
    xtream_config = db.Column(db.JSON)
    user_agent = db.Column(db.String(255), nullable=True)
    disable_ssl_verification = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def get_xtream_urls(self):
        """Primary url followed by fallback_urls, trimmed and de-duplicated in order."""
        config = self.xtream_config or {}
        primary = config.get("url")
        fallbacks = config.get("fallback_urls") or []

        urls = ([primary] if primary else []) + (fallbacks if isinstance(fallbacks, list) else [])

        normalized = []
        for url in urls:
            if not isinstance(url, str):
                continue
            trimmed = url.strip().rstrip("/")
            if trimmed and trimmed not in normalized:
                normalized.append(trimmed)
        return normalized

    def __repr__(self):
        return f"<Playlist {self.name}>"
