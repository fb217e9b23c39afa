from toggles.core.sync.background import BackgroundSync

__all__ = ["BackgroundSync"]
