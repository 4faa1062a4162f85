"""
Entry point for: python3 -m school_signage.display
"""

import sys

from .display_app import main

if __name__ == "__main__":
    sys.exit(main())
