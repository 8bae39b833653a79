from .refresh import BatchResult, RefreshOrchestrator

__all__ = ["RefreshOrchestrator", "BatchResult"]
