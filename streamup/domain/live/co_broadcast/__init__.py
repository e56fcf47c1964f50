from .coordinator import CoBroadcastCoordinator

__all__ = ["CoBroadcastCoordinator"]
