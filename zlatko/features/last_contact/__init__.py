"""
Last-contact feature: keeps prospects' last_contact_date in line with their
most recent communication.
"""
