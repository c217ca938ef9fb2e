from .prospect_repository import ProspectRepository

__all__ = ["ProspectRepository"]
