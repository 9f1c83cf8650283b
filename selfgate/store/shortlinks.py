import secrets
import threading
from typing import Dict, Optional

from selfgate.observability.logging import log
from selfgate.store.models import ShortLinkEntry

CODE_BYTES = 4  # 8 hex chars


class ShortLinkResolver:
    """
    In-memory short links for Self universal links, which are far longer than a
    Discord link button accepts. Entries never expire and vanish on restart.
    """

    def __init__(self, base_url: str = "") -> None:
        self.base_url = (base_url or "").rstrip("/")
        self._links: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, long_url: str) -> ShortLinkEntry:
        with self._lock:
            code = secrets.token_hex(CODE_BYTES)
            while code in self._links:
                code = secrets.token_hex(CODE_BYTES)
            self._links[code] = long_url
        return ShortLinkEntry(code=code, target=long_url)

    def url_for(self, code: str) -> str:
        return f"{self.base_url}/v/{code}"

    def shorten(self, long_url: str) -> str:
        entry = self.create(long_url)
        short_url = self.url_for(entry.code)
        log(
            "shorturl.created",
            "Created short URL",
            shortCode=entry.code,
            shortUrl=short_url,
            longUrlLength=len(long_url),
        )
        return short_url

    def resolve(self, code: str) -> Optional[str]:
        with self._lock:
            return self._links.get(code)

    def __len__(self) -> int:
        with self._lock:
            return len(self._links)
