"""
gymdesk - admin dashboard client for a gym management backend.
"""

__version__ = "0.1.0"
