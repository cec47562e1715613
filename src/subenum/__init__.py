"""
Subdomain discovery server - live multi-source enumeration over SSE
"""

__version__ = "2.2.0"

__all__ = ['__version__']
