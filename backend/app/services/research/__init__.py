from .enhancement_worker import EnhancementWorker, EnhancementResult

__all__ = ["EnhancementWorker", "EnhancementResult"]
