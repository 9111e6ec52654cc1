"""
Navidrome API client for spot-navidrome.

Implements DestinationCatalog over requests.Session. Two Navidrome APIs are
used:

    Native API (/auth/login, /api/...):
        Song and artist lookup, playlist listing and membership changes.
        Authenticated with the JWT returned by /auth/login, sent in the
        x-nd-authorization header together with the client unique id.

    Subsonic API (/rest/...):
        Starring and unstarring songs. Authenticated per request with
        the salted token scheme: t = md5(password + salt).

Pagination:
    Native list endpoints take _start/_end and report the full size in the
    x-total-count header. Pages are fetched until that count is reached or
    a page comes back short.

Retry Strategy:
    Connection errors, timeouts, HTTP 429 and HTTP 5xx are retried with
    exponential backoff and jitter (2s -> 4s -> 8s, capped at 30s, 2x on
    rate limits). An expired JWT (HTTP 401) triggers one new login.
    Anything else raises NavidromeError immediately.

Playlist Entries:
    The native API addresses playlist entries by 1-based position, so entry
    removals convert the 0-based positions of DestinationCatalog.
"""

import hashlib
import os
import random
import time
from typing import Any

import requests

from spot_navidrome.catalog.base import DestinationCatalog
from spot_navidrome.catalog.descriptor import ExportDescriptor
from spot_navidrome.catalog.models import CandidateSong, DestinationPlaylist
from spot_navidrome.core.config import NavidromeConfig
from spot_navidrome.core.exceptions import NavidromeError
from spot_navidrome.core.logger import get_logger


logger = get_logger(__name__)


# Client name reported to the Subsonic API
CLIENT_NAME = "spot-navidrome"

SUBSONIC_API_VERSION = "1.16.1"

REQUEST_TIMEOUT = 30

# Page sizes of native list endpoints
SONGS_PAGE_SIZE = 500
PLAYLISTS_PAGE_SIZE = 50
PLAYLIST_TRACKS_PAGE_SIZE = 500


# =============================================================================
# RETRY CONFIGURATION FOR TRANSIENT ERRORS
# =============================================================================

MAX_RETRIES = 4

RETRY_DELAY_BASE = 2.0

RETRY_DELAY_MAX = 30.0

RETRY_JITTER_FACTOR = 0.3

RATE_LIMIT_DELAY_MULTIPLIER = 2.0


def retry_delay(attempt: int, rate_limited: bool = False) -> float:
    """
    Backoff delay before retry number `attempt` (0-based).

    Exponential from RETRY_DELAY_BASE, capped at RETRY_DELAY_MAX, doubled on
    rate limits, with ±30% jitter. Never below 0.5 seconds.
    """
    base_delay = min(RETRY_DELAY_BASE * (2 ** attempt), RETRY_DELAY_MAX)
    if rate_limited:
        base_delay = min(base_delay * RATE_LIMIT_DELAY_MULTIPLIER, RETRY_DELAY_MAX)
    jitter = base_delay * RETRY_JITTER_FACTOR * (2 * random.random() - 1)
    return max(0.5, base_delay + jitter)


def _is_transient_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class NavidromeClient(DestinationCatalog):
    """
    Navidrome server access for matching and export.

    Attributes:
        _base_url: Server URL without trailing slash.
        _username: Navidrome user.
        _password: Password of that user.
        _session: requests.Session shared by all calls.
        _token: JWT of the native API (None until login).
        _client_id: Client unique id returned by login.

    Thread Safety:
        requests.Session is used concurrently by the batch matcher for GET
        requests only. Login happens before matching starts.

    Example:
        client = NavidromeClient.from_config(config.navidrome)
        client.login()
        songs = client.find_candidates_by_artist("Radiohead")
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        session: requests.Session | None = None
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._username = username
        self._password = password
        self._session = session or requests.Session()
        self._token: str | None = None
        self._client_id: str = ""

    @classmethod
    def from_config(cls, config: NavidromeConfig) -> "NavidromeClient":
        """Create a client from the navidrome section of config.yaml."""
        return cls(config.url, config.username, config.password)

    # =========================================================================
    # Authentication
    # =========================================================================

    def login(self) -> None:
        """
        Log in to the native API.

        Raises:
            NavidromeError: is_auth_error=True if the credentials are rejected,
                            otherwise when the server cannot be reached.
        """
        url = f"{self._base_url}/auth/login"
        try:
            response = self._session.post(
                url,
                json={"username": self._username, "password": self._password},
                timeout=REQUEST_TIMEOUT
            )
        except requests.RequestException as e:
            raise NavidromeError(
                f"Cannot reach Navidrome at {self._base_url}: {e}",
                details={"url": url}
            ) from e

        if response.status_code in (401, 403):
            raise NavidromeError(
                "Navidrome rejected the username or password",
                details={"url": url, "username": self._username},
                status_code=response.status_code,
                is_auth_error=True
            )
        if not response.ok:
            raise NavidromeError(
                f"Navidrome login failed: HTTP {response.status_code}",
                details={"url": url},
                status_code=response.status_code
            )

        data = response.json()
        self._token = data.get("token")
        self._client_id = data.get("id") or ""

        if not self._token:
            raise NavidromeError(
                "Navidrome login returned no token",
                details={"url": url},
                is_auth_error=True
            )

        logger.debug(f"Logged in to Navidrome as {self._username}")

    def _auth_headers(self) -> dict[str, str]:
        return {
            "x-nd-authorization": f"Bearer {self._token}",
            "x-nd-client-unique-id": self._client_id,
        }

    def _subsonic_params(self) -> dict[str, str]:
        salt = os.urandom(6).hex()
        token = hashlib.md5((self._password + salt).encode("utf-8")).hexdigest()
        return {
            "u": self._username,
            "t": token,
            "s": salt,
            "v": SUBSONIC_API_VERSION,
            "c": CLIENT_NAME,
            "f": "json",
        }

    # =========================================================================
    # Transport
    # =========================================================================

    def _request(
        self,
        method: str,
        path: str,
        params: Any = None,
        json_body: dict[str, Any] | None = None,
        native: bool = True
    ) -> requests.Response:
        """
        Send a request with retries on transient failures.

        Args:
            method: HTTP method.
            path: Path below the server URL ("/api/song").
            params: Query parameters (dict or list of pairs).
            json_body: JSON request body.
            native: Send native API auth headers (False for Subsonic calls,
                    which carry their auth in the query).

        Returns:
            The successful response.

        Raises:
            NavidromeError: On a non-transient HTTP error, or once retries
                            are exhausted.
        """
        url = f"{self._base_url}{path}"
        relogged = False
        attempt = 0

        if native and self._token is None:
            self.login()

        while True:
            headers = self._auth_headers() if native else {}
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers=headers,
                    timeout=REQUEST_TIMEOUT
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                if attempt >= MAX_RETRIES - 1:
                    raise NavidromeError(
                        f"Navidrome request failed after {MAX_RETRIES} attempts: {e}",
                        details={"url": url, "method": method}
                    ) from e
                delay = retry_delay(attempt)
                logger.debug(f"{method} {path} failed: {e}. Retrying in {delay:.1f}s")
                time.sleep(delay)
                attempt += 1
                continue

            if response.status_code == 401 and native and not relogged:
                logger.debug("Navidrome session expired, logging in again")
                relogged = True
                self.login()
                continue

            if _is_transient_status(response.status_code) and attempt < MAX_RETRIES - 1:
                rate_limited = response.status_code == 429
                delay = retry_delay(attempt, rate_limited)
                log_msg = f"{method} {path} returned HTTP {response.status_code}. Retrying in {delay:.1f}s"
                if rate_limited:
                    logger.warning(log_msg)
                else:
                    logger.debug(log_msg)
                time.sleep(delay)
                attempt += 1
                continue

            if not response.ok:
                raise NavidromeError(
                    f"Navidrome request {method} {path} failed: HTTP {response.status_code}",
                    details={"url": url, "method": method, "body": response.text[:200]},
                    status_code=response.status_code,
                    is_auth_error=response.status_code in (401, 403)
                )

            return response

    def _get_items(self, path: str, params: dict[str, Any]) -> tuple[list[dict[str, Any]], int | None]:
        response = self._request("GET", path, params=params)
        data = response.json()
        # Native list endpoints return a bare JSON array
        items = data if isinstance(data, list) else data.get("items") or []

        total_header = response.headers.get("x-total-count")
        total = int(total_header) if total_header and total_header.isdigit() else None
        return items, total

    def _paginate(self, path: str, params: dict[str, Any], page_size: int) -> list[dict[str, Any]]:
        collected: list[dict[str, Any]] = []
        start = 0

        while True:
            page_params = dict(params, _start=start, _end=start + page_size)
            items, total = self._get_items(path, page_params)
            collected.extend(items)

            if not items or len(items) < page_size:
                break
            if total is not None and len(collected) >= total:
                break
            start += page_size

        return collected

    # =========================================================================
    # Candidate lookup
    # =========================================================================

    def find_candidates_by_artist(self, name: str) -> list[CandidateSong]:
        """
        Return every song of the artist with this name.

        Raises:
            NavidromeError: If a request fails.
        """
        artists, _ = self._get_items("/api/artist", {"name": name, "_start": 0, "_end": 1})
        if not artists:
            logger.debug(f"Artist not found on Navidrome: {name}")
            return []

        songs = self._paginate("/api/song", {"artist_id": artists[0]["id"]}, SONGS_PAGE_SIZE)
        return [CandidateSong.from_native_api(song) for song in songs if song.get("id")]

    def find_candidates_by_title(self, title: str, limit: int) -> list[CandidateSong]:
        """
        Return at most `limit` songs whose title contains `title`.

        Raises:
            NavidromeError: If the request fails.
        """
        songs, _ = self._get_items("/api/song", {"title": title, "_start": 0, "_end": limit})
        return [CandidateSong.from_native_api(song) for song in songs[:limit] if song.get("id")]

    # =========================================================================
    # Playlists
    # =========================================================================

    def list_playlists(self) -> list[DestinationPlaylist]:
        items = self._paginate(
            "/api/playlist",
            {"_sort": "name", "_order": "ASC"},
            PLAYLISTS_PAGE_SIZE
        )
        playlists = []
        for item in items:
            comment = item.get("comment") or ""
            playlists.append(DestinationPlaylist(
                id=item["id"],
                name=item.get("name") or "",
                song_count=int(item.get("songCount") or 0),
                comment=comment,
                descriptor=ExportDescriptor.from_comment(comment),
            ))
        return playlists

    def get_playlist_song_ids(self, playlist_id: str) -> list[str]:
        entries = self._paginate(f"/api/playlist/{playlist_id}/tracks", {}, PLAYLIST_TRACKS_PAGE_SIZE)
        return [entry.get("mediaFileId") or entry.get("id") for entry in entries]

    def create_playlist(self, name: str, song_ids: list[str]) -> str:
        """
        Create a playlist and add the songs to it.

        Returns:
            The new playlist id.

        Raises:
            NavidromeError: If the playlist cannot be created or filled.
        """
        response = self._request("POST", "/api/playlist", json_body={"name": name, "public": False})
        playlist_id = (response.json() or {}).get("id")
        if not playlist_id:
            raise NavidromeError(
                f"Navidrome returned no id for new playlist '{name}'",
                details={"name": name}
            )

        if song_ids:
            try:
                self._add_songs(playlist_id, song_ids)
            except NavidromeError:
                self._delete_playlist(playlist_id)
                raise

        logger.debug(f"Created Navidrome playlist '{name}' ({playlist_id}) with {len(song_ids)} songs")
        return playlist_id

    def update_playlist_membership(
        self,
        playlist_id: str,
        add_ids: list[str],
        remove_positions: list[int]
    ) -> None:
        # Adding appends at the end, so the positions to remove stay valid
        if add_ids:
            self._add_songs(playlist_id, add_ids)
        if remove_positions:
            params = [("id", position + 1) for position in sorted(set(remove_positions))]
            self._request("DELETE", f"/api/playlist/{playlist_id}/tracks", params=params)

    def replace_playlist_membership(self, playlist_id: str, song_ids: list[str]) -> None:
        current = self.get_playlist_song_ids(playlist_id)
        self.update_playlist_membership(playlist_id, song_ids, list(range(len(current))))

    def _add_songs(self, playlist_id: str, song_ids: list[str]) -> None:
        self._request("POST", f"/api/playlist/{playlist_id}/tracks", json_body={"ids": list(song_ids)})

    def _delete_playlist(self, playlist_id: str) -> None:
        """Delete a playlist left empty by a failed create."""
        try:
            self._request("DELETE", f"/api/playlist/{playlist_id}")
            logger.debug(f"Deleted incomplete Navidrome playlist {playlist_id}")
        except NavidromeError as e:
            logger.warning(f"Could not delete incomplete playlist {playlist_id}: {e.message}")

    def read_playlist_descriptor(self, playlist_id: str) -> ExportDescriptor | None:
        response = self._request("GET", f"/api/playlist/{playlist_id}")
        return ExportDescriptor.from_comment((response.json() or {}).get("comment"))

    def write_playlist_descriptor(self, playlist_id: str, descriptor: ExportDescriptor) -> None:
        """Replace the playlist comment with the descriptor, keeping name and visibility."""
        current = self._request("GET", f"/api/playlist/{playlist_id}").json() or {}
        self._request(
            "PUT",
            f"/api/playlist/{playlist_id}",
            json_body={
                "name": current.get("name") or "",
                "comment": descriptor.to_comment(),
                "public": bool(current.get("public", False)),
            }
        )

    # =========================================================================
    # Favorites
    # =========================================================================

    def star_song(self, song_id: str) -> None:
        self._subsonic_call("star", song_id)

    def unstar_song(self, song_id: str) -> None:
        self._subsonic_call("unstar", song_id)

    def _subsonic_call(self, endpoint: str, song_id: str) -> None:
        params = dict(self._subsonic_params(), id=song_id)
        response = self._request("GET", f"/rest/{endpoint}", params=params, native=False)

        body = (response.json() or {}).get("subsonic-response") or {}
        if body.get("status") != "ok":
            error = body.get("error") or {}
            raise NavidromeError(
                f"Subsonic {endpoint} failed: {error.get('message') or 'unknown error'}",
                details={"song_id": song_id, "code": error.get("code")},
                is_auth_error=error.get("code") in (40, 41)
            )
