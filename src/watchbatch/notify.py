"""
Best-effort push notifications through ntfy.

Each event is a single POST of a human-readable message to `<server>/<topic>`.
Delivery failures are logged and dropped: they are never retried and never
change the outcome of a job. With no topic configured the notifier is a no-op.
"""
from typing import Optional

import requests

from watchbatch.utils import logger
from watchbatch.utils.constants import DEFAULT_NTFY_SERVER, DEFAULT_NTFY_TIMEOUT_SECONDS
from watchbatch.utils.logger import LogLevel


class Notifier:
    """Client for an ntfy server (https://ntfy.sh by default)."""

    def __init__(self, topic: Optional[str] = None, server: str = DEFAULT_NTFY_SERVER,
                 timeout: float = DEFAULT_NTFY_TIMEOUT_SECONDS):
        self.topic = topic
        self.server = server.rstrip("/")
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.topic)

    @property
    def url(self) -> str:
        return f"{self.server}/{self.topic}"

    def send(self, message: str, priority: Optional[str] = None) -> bool:
        """
        Send `message`; returns True if the server accepted it.

        `priority` maps to ntfy's Priority header (e.g. "high" for anomalies).
        """
        if not self.enabled:
            return False

        logger.log("notify.send", LogLevel.INFO, server=self.server, message=message)
        headers = {"Priority": priority} if priority else None
        try:
            resp = requests.post(self.url, data=message.encode("utf-8", errors="replace"), headers=headers,
                                 timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.log("notify.failed", LogLevel.WARN, server=self.server, error=str(e))
            return False
        return True
