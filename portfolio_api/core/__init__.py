"""
Core Module

Shared application components including:
- Configuration management
- Role catalog and authorization dependencies
- Logging configuration
- Rate limiting and request helpers
"""
