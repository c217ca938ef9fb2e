from .reconcile_job import run_last_contact_reconciliation

__all__ = ["run_last_contact_reconciliation"]
