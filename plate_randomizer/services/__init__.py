"""Business services."""
from plate_randomizer.services.layout_service import LayoutService

__all__ = ["LayoutService"]
