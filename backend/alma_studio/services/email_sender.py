"""Client email transport."""

import logging
from typing import List, Optional, Protocol, Sequence, Tuple

logger = logging.getLogger(__name__)


class ClientEmailSender(Protocol):
    """Anything that can deliver a rendered email and report success."""

    def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        *,
        tags: Optional[Sequence[str]] = None,
    ) -> bool: ...


class ConsoleEmailSender:
    """Logs emails instead of delivering them; used when no provider is configured."""

    def __init__(self) -> None:
        self.sent: List[Tuple[str, str]] = []

    def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        *,
        tags: Optional[Sequence[str]] = None,
    ) -> bool:
        self.sent.append((to_email, subject))
        logger.info(
            "Console email to %s: %s",
            to_email,
            subject,
            extra={"tags": list(tags or []), "body_length": len(body_html)},
        )
        return True
