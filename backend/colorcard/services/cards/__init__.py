"""
Color Card Cards Module

Size profiles, layout, image readiness, compositing and export of the
branded color card.
"""

__version__ = "1.0.0"
