"""
StatBot - message statistics bot for chat surfaces.
"""

__version__ = "0.1.0"
__logo__ = "📊"
