import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Toast:
    title: str
    description: Optional[str] = None
    variant: str = "default"  # default, destructive


class Notifier:
    """Collects user-facing toast messages"""

    def __init__(self):
        self.toasts: list[Toast] = []

    def toast(self, title: str, description: Optional[str] = None, variant: str = "default") -> Toast:
        toast = Toast(title, description, variant)
        self.toasts.append(toast)
        if variant == "destructive":
            logger.warning(f"🔔 {title}: {description}")
        else:
            logger.info(f"🔔 {title}: {description}")
        return toast

    @property
    def last(self) -> Optional[Toast]:
        return self.toasts[-1] if self.toasts else None

    def clear(self) -> None:
        self.toasts.clear()
