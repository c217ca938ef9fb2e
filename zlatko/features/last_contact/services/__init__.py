from .reconciler import LastContactReconciler, contact_day, last_contact_reconciler

__all__ = ["LastContactReconciler", "contact_day", "last_contact_reconciler"]
