"""
Interaction ledger, event payloads and analytics.
"""
