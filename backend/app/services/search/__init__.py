"""Search orchestration."""

from .service import SearchOrchestrator, merge_places

__all__ = ["SearchOrchestrator", "merge_places"]
