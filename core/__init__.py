"""
Core modules for SMS transaction extraction.

This package contains:
- config: Application configuration and settings
- db: SQLite transaction store
- exceptions: Custom exception classes
- exporters: Excel export functionality
- extraction: Transaction gates and field extraction
- logger: Logging configuration
- patterns: Bank signatures, keywords and regex chains
- schema: Pydantic models for messages and records
- sources: Message-source adapters and inbox export loading
"""
