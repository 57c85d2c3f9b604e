"""
Entry point for running trail_counter as a module.

Usage:
    python -m trail_counter read ./shuttlefiles --counts-out counts.csv
    python -m trail_counter correct-dst ./shuttlefiles --direction end --year 2024
    python -m trail_counter missing-hours counts.csv --group counter --fill
    python -m trail_counter info
"""

from .cli import main

if __name__ == "__main__":
    main()
