"""
School Signage Display.
Real-time settings sync, slideshow and emergency alert runtime for school displays.
"""

__version__ = "0.1.0"
