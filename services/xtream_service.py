"""
Xtream Codes API client

Talks to Xtream-compatible IPTV providers:
- player_api.php listings (categories, streams, series, info)
- direct movie/series media URLs with path-embedded credentials

Calls are retried a fixed number of times with a fixed delay between
attempts. A client is built once from a playlist or a raw config map and
keeps that session for its whole life.
"""
import enum
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import urlencode, urlsplit

import requests

from schemas import XtreamConfigSchema

logger = logging.getLogger(__name__)

DEFAULT_RETRY_LIMIT = 5
DEFAULT_RETRY_DELAY = 1
DEFAULT_TIMEOUT = 10
DEFAULT_USER_AGENT = "VLC/3.0.21 LibVLC/3.0.21"

PASSWORD_PARAM = re.compile(r"(?<=[?&]password=)[^&#\s'\"]*")
# {server}/movie|series|live/{username}/{password}/{id}
MEDIA_PASSWORD_SEGMENT = re.compile(r"(/(?:movie|series|live)/[^/?#\s]+/)[^/?#\s]+(?=/)")


# ============================================================================
# Errors
# ============================================================================


class XtreamError(Exception):
    """Base exception for Xtream client errors"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NotInitializedError(XtreamError):
    """Raised when a call is made on a client without a session"""

    pass


class TransportFailure(XtreamError):
    """Network, DNS or timeout failure on a single attempt"""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class UpstreamFailure(XtreamError):
    """Non-2xx response on a single attempt"""

    pass


class RetriesExhausted(XtreamError):
    """Raised when every attempt failed; wraps the last failure"""

    def __init__(self, last_error: XtreamError, attempts: int):
        super().__init__(
            f"Xtream call failed after {attempts} attempt(s): {last_error.message}",
            last_error.status_code,
        )
        self.last_error = last_error
        self.attempts = attempts


class CallCancelled(XtreamError):
    """Raised when the caller's cancel event was set mid-retry"""

    pass


class InitFailure(enum.Enum):
    """Non-exceptional outcomes of initialize()"""

    MISSING_CONFIGURATION = "missing_configuration"
    CONFIGURATION_MISMATCH = "configuration_mismatch"


# ============================================================================
# Session
# ============================================================================


@dataclass(frozen=True)
class FromPlaylist:
    """Configure from a playlist record (needs xtream, xtream_config, user_agent)"""

    playlist: Any


@dataclass(frozen=True)
class FromRawConfig:
    """Configure from a plain {url, username, password} mapping"""

    config: Mapping[str, Any]


ConfigSource = Union[FromPlaylist, FromRawConfig]


@dataclass(frozen=True)
class Session:
    """Connection parameters of one client"""

    server: str
    username: str
    password: str = field(repr=False)
    retry_limit: int = DEFAULT_RETRY_LIMIT
    user_agent: str = DEFAULT_USER_AGENT
    verify_ssl: bool = True
    servers: Tuple[str, ...] = ()

    def __post_init__(self):
        limit = self.retry_limit
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            raise ValueError(f"retry_limit must be a positive integer, got {limit!r}")

    @property
    def base_url(self) -> str:
        return ensure_scheme(self.server)


def ensure_scheme(server: str) -> str:
    """Prefix http:// unless the server already carries http:// or https://"""
    if server.startswith("http://") or server.startswith("https://"):
        return server
    return f"http://{server}"


def redact(url: str) -> str:
    """Mask the password query value and the password segment of a media URL"""
    url = PASSWORD_PARAM.sub("***", url)
    return MEDIA_PASSWORD_SEGMENT.sub(r"\1***", url)


def wait_on_event(event: threading.Event, delay: float) -> bool:
    """Wait up to delay seconds; True when the event was set"""
    return event.wait(delay)


def _build_session(source: ConfigSource, retry_limit: int, user_agent: Optional[str]) -> Session:
    if isinstance(source, FromPlaylist):
        playlist = source.playlist
        config = XtreamConfigSchema().load(playlist.xtream_config or {})
        servers = tuple(playlist.get_xtream_urls()) if hasattr(playlist, "get_xtream_urls") else ()
        return Session(
            server=servers[0] if servers else config["url"],
            username=config["username"],
            password=config["password"],
            retry_limit=retry_limit,
            user_agent=getattr(playlist, "user_agent", None) or user_agent or DEFAULT_USER_AGENT,
            verify_ssl=not getattr(playlist, "disable_ssl_verification", False),
            servers=servers,
        )

    config = XtreamConfigSchema().load(dict(source.config))
    return Session(
        server=config["url"],
        username=config["username"],
        password=config["password"],
        retry_limit=retry_limit,
        user_agent=user_agent or DEFAULT_USER_AGENT,
    )


def initialize(
    source: Optional[ConfigSource],
    retry_limit: int = DEFAULT_RETRY_LIMIT,
    user_agent: Optional[str] = None,
    **options,
) -> Union["XtreamService", InitFailure]:
    """
    Build a client from a playlist or a raw config map.

    Args:
        source: FromPlaylist or FromRawConfig
        retry_limit: Attempts per server before a call gives up
        user_agent: Fallback User-Agent when the playlist has none
        **options: Passed through to XtreamService (sleep, wait, retry_delay, timeout)

    Returns:
        XtreamService, or an InitFailure member when the source does not apply.
        No network call is made here.

    Raises:
        ValueError: retry_limit is not a positive integer
        marshmallow.ValidationError: config url is malformed
    """
    if isinstance(source, FromPlaylist):
        if source.playlist is None:
            return InitFailure.MISSING_CONFIGURATION
        if not getattr(source.playlist, "xtream", False):
            logger.debug("Playlist is not an Xtream playlist, skipping")
            return InitFailure.CONFIGURATION_MISMATCH
    elif not isinstance(source, FromRawConfig):
        return InitFailure.MISSING_CONFIGURATION

    return XtreamService(_build_session(source, retry_limit, user_agent), **options)


# ============================================================================
# Client
# ============================================================================


class XtreamService:
    """
    Client for an Xtream Codes provider.

    Usage:
        service = initialize(FromPlaylist(playlist))
        if isinstance(service, InitFailure):
            ...  # not an Xtream playlist
        categories = service.get_vod_categories()
    """

    def __init__(
        self,
        session: Optional[Session] = None,
        sleep: Callable[[float], Any] = time.sleep,
        wait: Callable[[threading.Event, float], bool] = wait_on_event,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._session = session
        self._sleep = sleep
        self._wait = wait
        self.retry_delay = retry_delay
        self.timeout = timeout

    @property
    def session(self) -> Session:
        if self._session is None:
            raise NotInitializedError("Xtream client has no session. Build it with initialize().")
        return self._session

    # ------------------------------------------------------------------------
    # URL building
    # ------------------------------------------------------------------------

    def build_url(self, action: str, extra: Optional[Mapping[str, Any]] = None) -> str:
        """Build a player_api.php URL; username, password and action cannot be overridden"""
        session = self.session
        params: Dict[str, Any] = {
            "username": session.username,
            "password": session.password,
            "action": action,
        }
        for key, value in (extra or {}).items():
            params.setdefault(key, value)
        return f"{session.base_url}/player_api.php?{urlencode(params)}"

    def _auth_url(self) -> str:
        session = self.session
        query = urlencode({"username": session.username, "password": session.password})
        return f"{session.base_url}/player_api.php?{query}"

    def _media_url(self, kind: str, stream_id: Any, ext: Optional[str]) -> str:
        session = self.session
        suffix = f".{ext}" if ext else ""
        return f"{session.base_url}/{kind}/{session.username}/{session.password}/{stream_id}{suffix}"

    def build_movie_url(self, stream_id: Any, ext: Optional[str] = None) -> str:
        return self._media_url("movie", stream_id, ext)

    def build_series_url(self, stream_id: Any, ext: Optional[str] = None) -> str:
        return self._media_url("series", stream_id, ext)

    # ------------------------------------------------------------------------
    # Calling
    # ------------------------------------------------------------------------

    def _servers(self) -> Tuple[str, ...]:
        session = self.session
        return session.servers or (session.server,)

    def _rebase(self, url: str, server: str) -> str:
        """Move a URL built against the primary server onto a fallback server"""
        primary = self.session.base_url
        if server == self.session.server or not url.startswith(primary):
            return url
        return ensure_scheme(server) + url[len(primary):]

    def _attempt(self, url: str, timeout: float) -> Tuple[bool, Any]:
        """Run one GET. Returns (True, payload) or (False, XtreamError)."""
        session = self.session
        try:
            response = requests.get(
                url,
                headers={"User-Agent": session.user_agent},
                timeout=timeout,
                verify=session.verify_ssl,
            )
        except requests.RequestException as e:
            return False, TransportFailure(f"{type(e).__name__}: {redact(str(e))}", cause=e)

        if not 200 <= response.status_code < 300:
            return False, UpstreamFailure(f"HTTP {response.status_code}", status_code=response.status_code)

        try:
            return True, response.json()
        except ValueError:
            logger.warning(f"Non-JSON response from {redact(url)}")
            return True, None

    def call(self, url: str, timeout: Optional[float] = None, cancel_event: Optional[threading.Event] = None) -> Any:
        """
        GET a URL with bounded retries.

        Every failed attempt (HTTP or transport) is followed by one retry delay,
        the last one included. Each server in the session gets the full
        retry budget. Without a cancel_event the delay goes through the
        injected sleep; with one it goes through the injected wait, which
        returns early when the event is set.

        Raises:
            NotInitializedError: Client has no session
            RetriesExhausted: Every attempt on every server failed
            CallCancelled: cancel_event was set
        """
        session = self.session
        timeout = self.timeout if timeout is None else timeout
        last_error: Optional[XtreamError] = None
        total_attempts = 0

        for server in self._servers():
            request_url = self._rebase(url, server)
            attempts = 0
            while attempts < session.retry_limit:
                if cancel_event is not None and cancel_event.is_set():
                    raise CallCancelled("Xtream call cancelled")

                ok, result = self._attempt(request_url, timeout)
                if ok:
                    return result

                last_error = result
                attempts += 1
                total_attempts += 1
                logger.warning(
                    f"Xtream attempt {attempts}/{session.retry_limit} to "
                    f"{redact(request_url)} failed: {result.message}"
                )

                if cancel_event is not None:
                    if self._wait(cancel_event, self.retry_delay):
                        raise CallCancelled("Xtream call cancelled")
                else:
                    self._sleep(self.retry_delay)

        logger.error(f"Xtream call to {urlsplit(url).path} exhausted {total_attempts} attempt(s)")
        raise RetriesExhausted(last_error, total_attempts)

    # ------------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------------

    def _get(self, action: str, cancel_event: Optional[threading.Event] = None, **extra) -> Any:
        params = {k: v for k, v in extra.items() if v is not None}
        payload = self.call(self.build_url(action, params), cancel_event=cancel_event)
        return [] if payload is None else payload

    def authenticate(self, cancel_event: Optional[threading.Event] = None) -> Dict[str, Any]:
        """Return the provider's user_info block, or {} when it has none"""
        payload = self.call(self._auth_url(), cancel_event=cancel_event)
        if not isinstance(payload, dict):
            return {}
        return payload.get("user_info") or {}

    def user_info(self, timeout: Optional[float] = None, cancel_event: Optional[threading.Event] = None) -> Dict[str, Any]:
        """Return the full authentication payload (user_info and server_info)"""
        payload = self.call(self._auth_url(), timeout=timeout, cancel_event=cancel_event)
        return payload or {}

    def get_live_categories(self, cancel_event=None):
        return self._get("get_live_categories", cancel_event)

    def get_live_streams(self, category_id=None, cancel_event=None):
        return self._get("get_live_streams", cancel_event, category_id=category_id)

    def get_vod_categories(self, cancel_event=None):
        return self._get("get_vod_categories", cancel_event)

    def get_vod_streams(self, category_id=None, cancel_event=None):
        return self._get("get_vod_streams", cancel_event, category_id=category_id)

    def get_series_categories(self, cancel_event=None):
        return self._get("get_series_categories", cancel_event)

    def get_series(self, category_id=None, cancel_event=None):
        return self._get("get_series", cancel_event, category_id=category_id)

    def get_series_info(self, series_id, cancel_event=None):
        return self._get("get_series_info", cancel_event, series_id=series_id)

    def get_vod_info(self, vod_id, cancel_event=None):
        return self._get("get_vod_info", cancel_event, vod_id=vod_id)
