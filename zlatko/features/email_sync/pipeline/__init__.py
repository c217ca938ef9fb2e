"""
Per-message import pipeline: MIME decoding, header classification and
persistence of communications.
"""

__all__ = ["classifier", "importer", "mime_decoder"]
