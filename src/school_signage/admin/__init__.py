"""
Admin package for the School Signage system.
Command-line console for editing the settings every display follows.
"""
