"""
HTTP API for SMS transaction extraction.
"""
