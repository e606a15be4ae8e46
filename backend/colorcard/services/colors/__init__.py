"""
Color Card Colors Module

Provides dominant color extraction for card photos using bucketed
histogram voting over a downscaled sampling buffer.
"""

__version__ = "1.0.0"
