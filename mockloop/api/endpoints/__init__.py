"""
API endpoint modules for MockLoop
"""

from mockloop.api.endpoints import interview, audio

__all__ = ["interview", "audio"]
