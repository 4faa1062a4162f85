"""
Display package for the School Signage system.
Contains the settings stream subscriber, settings applier, display
orchestrator and the slideshow, livestream and emergency alert consumers.
"""
