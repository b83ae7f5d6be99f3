"""
streamgrab: a concurrent HLS and direct media grabber.
"""

__version__ = "1.0.0"
