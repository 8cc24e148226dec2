#!/usr/bin/env python3
"""Main entry point for episode_matcher package."""

import sys
from episode_matcher.cli import main

if __name__ == "__main__":
    sys.exit(main())
