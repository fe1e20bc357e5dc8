"""
Services Module

Form lifecycle, response ingestion, analytics and user accounts.
"""
