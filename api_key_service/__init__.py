"""
API Key Service.

Issues API key/secret pairs, binds them to users, and validates them on every
inbound request through a scoped authorization pipeline.
"""

__version__ = "0.1.0"
