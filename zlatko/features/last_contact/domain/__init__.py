from .models import ProspectContact, ReconciliationError, ReconciliationResult

__all__ = ["ProspectContact", "ReconciliationError", "ReconciliationResult"]
