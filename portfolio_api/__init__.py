"""
Role and permission backend for the UNSAAC teaching portfolio system.
"""

__version__ = "0.1.0"
