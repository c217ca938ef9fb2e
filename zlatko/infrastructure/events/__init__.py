"""
Change notification infrastructure.

Write paths publish row-level change events here so readers can react to
new communications and updated prospects without polling the store.
"""

from zlatko.infrastructure.events.change_bus import ChangeBus, ChangeEvent, change_bus, publish_change

__all__ = ["ChangeBus", "ChangeEvent", "change_bus", "publish_change"]
