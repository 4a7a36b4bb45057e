"""Progress and diagnostic reporting for the allocation engine."""
import logging
from typing import List, Optional, Tuple


class RandomizationObserver:
    """Receives messages from the solver. The base class ignores them."""
    
    def info(self, message: str) -> None:
        pass
    
    def warning(self, message: str) -> None:
        pass
    
    def error(self, message: str) -> None:
        pass


class LoggingObserver(RandomizationObserver):
    """Forwards solver messages to a logger."""
    
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("plate_randomizer.solver")
    
    def info(self, message: str) -> None:
        self.logger.info(message)
    
    def warning(self, message: str) -> None:
        self.logger.warning(message)
    
    def error(self, message: str) -> None:
        self.logger.error(message)


class CollectingObserver(RandomizationObserver):
    """Keeps every message in memory, optionally passing them on."""
    
    def __init__(self, forward: Optional[RandomizationObserver] = None):
        self.messages: List[Tuple[str, str]] = []
        self.forward = forward
    
    def info(self, message: str) -> None:
        self._record("info", message)
    
    def warning(self, message: str) -> None:
        self._record("warning", message)
    
    def error(self, message: str) -> None:
        self._record("error", message)
    
    def _record(self, level: str, message: str) -> None:
        self.messages.append((level, message))
        if self.forward is not None:
            getattr(self.forward, level)(message)
    
    def by_level(self, level: str) -> List[str]:
        """Messages recorded at one level."""
        return [m for lvl, m in self.messages if lvl == level]


def resolve_observer(observer: Optional[RandomizationObserver]) -> RandomizationObserver:
    """Default to logging when no observer is given."""
    return observer if observer is not None else LoggingObserver()
