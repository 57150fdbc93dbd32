"""
Core ingestion and detection services.
"""
