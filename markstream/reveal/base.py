from abc import ABC, abstractmethod
from typing import Callable


class RevealTimer(ABC):
    """Periodic tick source that paces the reveal scheduler."""

    @abstractmethod
    def start(self, interval_ms: float, callback: Callable[[], None]) -> None:
        """Call ``callback`` every ``interval_ms`` until cancelled."""
        ...

    @abstractmethod
    def cancel(self) -> None:
        ...

    @property
    @abstractmethod
    def is_running(self) -> bool:
        ...
