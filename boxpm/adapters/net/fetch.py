"""
Fetch adapter — the ``fetch(url) -> bytes`` capability.

Remote locators go through ``urllib.request``; ``file://`` locators are
read straight from disk. An empty body counts as a failure, so callers
only ever see non-empty payloads on success.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from pathlib import Path

from boxpm.adapters.base import Adapter, ExecutionContext
from boxpm.core.models.action import Receipt

logger = logging.getLogger(__name__)

FILE_SCHEME = "file://"
USER_AGENT = "box/1.0"


class FetchAdapter(Adapter):
    """Retrieve a document or binary by URL.

    Action params:
        url (str): ``http(s)://`` or ``file://`` locator.
        timeout (int): Request timeout in seconds (default: adapter timeout).
    """

    def __init__(self, timeout: int = 60):
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "fetch"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.params.get("url", ""):
            return False, "Missing required param: 'url'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        url = context.action.params["url"]
        timeout = context.action.params.get("timeout", self._timeout)

        try:
            if url.startswith(FILE_SCHEME):
                data = Path(url[len(FILE_SCHEME):]).read_bytes()
            else:
                req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
                with urllib.request.urlopen(req, timeout=timeout) as resp:
                    data = resp.read()
        except urllib.error.HTTPError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"HTTP {e.code} fetching {url}",
                metadata={"url": url, "status": e.code},
            )
        except (urllib.error.URLError, OSError, ValueError) as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Cannot fetch {url}: {e}",
                metadata={"url": url},
            )

        if not data:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Empty response from {url}",
                metadata={"url": url},
            )

        logger.debug("Fetched %d bytes from %s", len(data), url)
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            payload=data,
            metadata={"url": url, "size": len(data)},
        )
