"""
Main entry point for running the package as a module.

Uses the Click-based CLI from chatgpt_exporter/cli/.
"""
import sys

from chatgpt_exporter.cli import main

if __name__ == "__main__":
    sys.exit(main())
