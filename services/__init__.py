"""
Service layer for business logic.

This package contains the transaction service that connects a message
source to the extractor and forwards results to storage.
"""
