"""
Entry point for running routepulse as a module.

Usage: python -m routepulse [OPTIONS] COMMAND [ARGS]...
"""

from .cli import main

if __name__ == "__main__":
    main()
