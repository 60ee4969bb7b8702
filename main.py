#!/usr/bin/env python3
"""
Main entry point for the commitment bundle CLI
"""
import sys
import os

# Make the package importable when run from a source checkout
current_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, current_dir)

from commitbundle.cli import main

if __name__ == "__main__":
    main()
