"""
Entry point for running Rhythm Drill as a module.

Usage:
    python -m rhythm_drill drill
    python -m rhythm_drill pool --level 3
    python -m rhythm_drill --help
"""
from rhythm_drill.delivery.cli import main

if __name__ == "__main__":
    main()
