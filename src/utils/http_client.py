from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin

import requests

from src.utils.errors import NotFound, ParseStructure, TransientNetwork
from src.utils.hashing import sha256_bytes

logger = logging.getLogger(__name__)


@dataclass
class HttpSettings:
    user_agent: str = "EV-Tracker/1.0"
    timeout_seconds: float = 30.0
    rate_limit_seconds: float = 0.5
    max_redirects: int = 5
    retry_delay_seconds: float = 1.0


@dataclass
class FetchedDocument:
    url: str
    content: bytes
    status: int
    encoding: str | None = None

    @property
    def sha256(self) -> str:
        return sha256_bytes(self.content)

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


class DocumentFetcher:
    """
    Downloads raw documents from an ordered list of URL candidates.

    Publishers rename their file patterns between periods without notice, so each month
    offers several candidates; the first one answering 200 with a fully-read body wins.
    Redirects are followed by hand (bounded) so the body of every skipped hop gets released.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        settings: Optional[HttpSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or HttpSettings()
        self.session = session or requests.Session()
        self._sleep = sleep

    @property
    def headers(self) -> Dict[str, str]:
        return {"User-Agent": self.settings.user_agent}

    def pause(self) -> None:
        if self.settings.rate_limit_seconds > 0:
            self._sleep(self.settings.rate_limit_seconds)

    # ----------------------------
    # Documents
    # ----------------------------

    def _follow_redirects(self, url: str) -> Tuple[Any, str]:
        current = url
        for hop in range(self.settings.max_redirects + 1):
            r = self.session.request(
                "GET",
                current,
                headers=self.headers,
                timeout=self.settings.timeout_seconds,
                allow_redirects=False,
                stream=True,
            )
            location = r.headers.get("Location") if 300 <= r.status_code < 400 else None
            if not location:
                return r, current
            # Drain the hop body so the connection goes back to the pool.
            try:
                r.content
            finally:
                r.close()
            if hop == self.settings.max_redirects:
                break
            current = urljoin(current, location)
        raise NotFound(f"Too many redirects (>{self.settings.max_redirects}) from {url}", [url])

    def _fetch_one(self, url: str) -> FetchedDocument:
        try:
            r, final_url = self._follow_redirects(url)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientNetwork(f"{type(e).__name__} for {url}: {e}") from e
        except requests.RequestException as e:
            raise NotFound(f"Request failed for {url}: {e}", [url]) from e

        try:
            if r.status_code != 200:
                raise NotFound(f"HTTP {r.status_code} for {final_url}", [url])
            try:
                content = r.content
            except (requests.ConnectionError, requests.Timeout, requests.exceptions.ChunkedEncodingError) as e:
                raise TransientNetwork(f"Body read interrupted for {final_url}: {e}") from e
            return FetchedDocument(url=final_url, content=content, status=r.status_code, encoding=r.encoding)
        finally:
            r.close()

    def _retry_once(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except TransientNetwork as e:
            logger.warning(
                "transient network error, retrying once delay=%.1fs reason=%s",
                self.settings.retry_delay_seconds,
                e,
            )
            self._sleep(self.settings.retry_delay_seconds)
            return fn(*args, **kwargs)

    def fetch(self, urls: Iterable[str]) -> FetchedDocument:
        attempted: List[str] = []
        for url in urls:
            attempted.append(url)
            logger.debug("trying url=%s", url)
            try:
                doc = self._retry_once(self._fetch_one, url)
            except (NotFound, TransientNetwork) as e:
                logger.debug("candidate failed url=%s reason=%s", url, e)
                continue
            logger.info("fetched url=%s bytes=%d", doc.url, len(doc.content))
            return doc
        raise NotFound(f"All {len(attempted)} URL candidates failed", attempted)

    # ----------------------------
    # JSON APIs
    # ----------------------------

    def _json_once(
        self,
        url: str,
        method: str,
        params: Optional[Dict[str, Any]],
        body: Optional[Dict[str, Any]],
    ) -> Any:
        try:
            r = self.session.request(
                method,
                url,
                params=params,
                json=body,
                headers=self.headers,
                timeout=self.settings.timeout_seconds,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientNetwork(f"{type(e).__name__} for {url}: {e}") from e
        except requests.RequestException as e:
            raise NotFound(f"Request failed for {url}: {e}", [url]) from e

        try:
            if not 200 <= r.status_code < 300:
                raise NotFound(f"HTTP {r.status_code} for {method} {url}", [url])
            try:
                return r.json()
            except ValueError as e:
                raise ParseStructure(f"Invalid JSON from {url}: {e}") from e
        finally:
            r.close()

    def fetch_json(
        self,
        url: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        retry: bool = True,
    ) -> Any:
        if not retry:
            return self._json_once(url, method.upper(), params, body)
        try:
            return self._retry_once(self._json_once, url, method.upper(), params, body)
        except TransientNetwork as e:
            raise NotFound(f"Gave up after retry: {e}", [url]) from e
