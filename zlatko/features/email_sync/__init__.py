"""
Email sync feature: Gmail and IMAP ingestion of prospect conversations.
"""
