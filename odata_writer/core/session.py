"""
odata_writer.core.session - OData HTTP Session Management
==========================================================

Transport collaborator for written requests:
- Basic and Bearer token authentication
- Automatic retry with exponential backoff
- CSRF token handling for write operations
- Error extraction from OData error payloads
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Union
import logging
import threading
import time

import requests
from requests import Response, Session
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from odata_writer.core.errors import ODataUpstreamError
from odata_writer.odata.uri import create_absolute_uri

if TYPE_CHECKING:
    from odata_writer.odata.batch import BatchWriter
    from odata_writer.odata.request_writer import ODataRequest


@dataclass
class ODataAuth:
    """
    Authentication configuration.

    Parameters
    ----------
    kind : str
        Either "basic" or "bearer"
    value : tuple or str
        For basic: (username, password) tuple
        For bearer: access token string

    Examples
    --------
    >>> auth = ODataAuth("basic", ("USER", "PASSWORD"))
    >>> auth = ODataAuth("bearer", "eyJ...")
    """
    kind: str  # "basic" | "bearer"
    value: Union[Tuple[str, str], str]  # (user, pass) or access_token


@dataclass
class ODataConfig:
    """
    Connection and serialization configuration.

    Parameters
    ----------
    base_url : str
        Service root, e.g. "https://host/odata/Shop/"
    auth : ODataAuth
        Authentication configuration
    payload_format : str
        "json" (default) or "atom" for the legacy XML format
    indent : bool
        Pretty-print written payloads
    timeout : float
        Request timeout in seconds (default: 60.0)
    retries : int
        Number of retry attempts (default: 3)
    backoff : float
        Backoff factor for retries (default: 0.5)
    verify : bool or str
        SSL verification (True, False, or path to CA bundle)
    user_agent : str
        User-Agent header value
    csrf : bool
        Fetch an X-CSRF-Token before the first write

    Examples
    --------
    >>> cfg = ODataConfig(
    ...     base_url="https://host/odata/Shop/",
    ...     auth=ODataAuth("basic", ("USER", "PASS")),
    ...     payload_format="json",
    ... )
    """
    base_url: str
    auth: ODataAuth
    payload_format: str = "json"
    indent: bool = False
    timeout: float = 60.0
    retries: int = 3
    backoff: float = 0.5
    verify: Union[bool, str] = True
    user_agent: str = "odata-writer/0.1"
    csrf: bool = False


class ODataSession:
    """
    HTTP session that sends requests assembled by ``RequestWriter``.

    Parameters
    ----------
    cfg : ODataConfig
        Connection configuration

    Examples
    --------
    >>> with ODataSession(cfg) as sess:
    ...     response = sess.send(writer.create_insert_request("Products", data))
    """

    def __init__(self, cfg: ODataConfig) -> None:
        self.cfg = cfg
        self.base = cfg.base_url.rstrip("/") + "/"
        self.timeout = float(cfg.timeout)
        self.verify = cfg.verify
        self.logger = logging.getLogger("odata_writer.http")

        self.session = self._build_session()

        self._csrf_token: Optional[str] = None
        self._csrf_lock = threading.Lock()

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __enter__(self) -> "ODataSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ---------------- auth/session ----------------

    def _build_session(self) -> Session:
        sess = requests.Session()

        if self.cfg.auth.kind == "basic":
            sess.auth = self.cfg.auth.value  # type: ignore[assignment]
        elif self.cfg.auth.kind == "bearer":
            sess.headers.update({"Authorization": f"Bearer {self.cfg.auth.value}"})
        else:
            raise ValueError("auth.kind must be 'basic' or 'bearer'")

        sess.headers.update({
            "Accept": "application/json",
            "OData-Version": "4.0",
            "OData-MaxVersion": "4.0",
            "User-Agent": self.cfg.user_agent,
        })

        retry = Retry(
            total=self.cfg.retries,
            backoff_factor=self.cfg.backoff,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset({"GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=20, pool_maxsize=50)
        sess.mount("https://", adapter)
        sess.mount("http://", adapter)
        return sess

    # ---------------- helpers ----------------

    def _url(self, path: str) -> str:
        return create_absolute_uri(self.base, path)

    def _extract_error(self, r: Response) -> str:
        try:
            data = r.json()
        except ValueError:
            return r.text
        if not isinstance(data, dict):
            return r.text
        err = data.get("error")
        if not isinstance(err, dict):
            return r.text

        code = err.get("code")
        message = None
        if isinstance(err.get("message"), dict):
            message = err["message"].get("value")
        elif isinstance(err.get("message"), str):
            message = err.get("message")

        target = err.get("target")
        parts = []
        if code:
            parts.append(f"code={code}")
        if message:
            parts.append(f"message={message}")
        if target:
            parts.append(f"target={target}")
        return " | ".join(parts) or r.text

    def _raise_for_error(self, r: Response, url: str) -> None:
        if r.status_code >= 400 or r.status_code in (301, 302, 303, 307, 308):
            body = self._extract_error(r)
            raise ODataUpstreamError(r.status_code, body, url, dict(r.headers))

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        data: Optional[Union[str, bytes]] = None,
    ) -> Response:
        t0 = time.perf_counter()
        r = self.session.request(
            method=method,
            url=url,
            headers=headers,
            data=data,
            timeout=self.timeout,
            verify=self.verify,
        )
        self._raise_for_error(r, url)
        dt = (time.perf_counter() - t0) * 1000.0
        self.logger.debug("%s %s %sms", method.upper(), url, round(dt, 1))
        return r

    def _ensure_csrf(self) -> Dict[str, str]:
        if not self.cfg.csrf:
            return {}
        if self._csrf_token is None:
            with self._csrf_lock:
                if self._csrf_token is None:
                    url = self._url("$metadata")
                    headers = dict(self.session.headers)
                    headers["X-CSRF-Token"] = "Fetch"
                    r = self._request("GET", url, headers=headers)
                    token = r.headers.get("x-csrf-token")
                    if not token:
                        raise ODataUpstreamError(400, "Failed to obtain CSRF token", url, dict(r.headers))
                    self._csrf_token = token
        return {"X-CSRF-Token": self._csrf_token}

    # ---------------- public ops ----------------

    def get_text(self, path: str, *, extra_headers: Optional[Dict[str, str]] = None) -> str:
        """
        Execute a GET request and return the raw text response.

        Used for $metadata, which is XML.
        """
        url = self._url(path)
        headers = dict(self.session.headers)
        if path == "$metadata" or path.endswith("/$metadata"):
            headers["Accept"] = "application/xml"
        if extra_headers:
            headers.update(extra_headers)
        return self._request("GET", url, headers=headers).text

    def _json_or_none(self, r: Response) -> Optional[Dict[str, Any]]:
        if not r.content:
            return None
        ctype = (r.headers.get("Content-Type") or "").lower()
        if "json" in ctype:
            try:
                return r.json()
            except ValueError:
                pass
        return {"raw": r.text, "content_type": r.headers.get("Content-Type", "")}

    def send(self, request: "ODataRequest") -> Optional[Dict[str, Any]]:
        """
        Send a request assembled by ``RequestWriter``.

        Returns
        -------
        dict or None
            Parsed JSON response, or None for an empty (e.g. 204) response
        """
        if request.batch_message is not None:
            raise ValueError("Batched requests are sent with send_batch()")
        headers = dict(request.headers)
        if request.method != "GET":
            headers.update(self._ensure_csrf())
        r = self._request(request.method, request.uri, headers=headers, data=request.body)
        return self._json_or_none(r)

    def send_batch(self, batch: "BatchWriter") -> Response:
        """POST a rendered batch to ``$batch`` and return the raw multipart response."""
        body, content_type = batch.write_batch()
        headers = {"Content-Type": content_type}
        headers.update(self._ensure_csrf())
        return self._request("POST", self._url("$batch"), headers=headers, data=body)
