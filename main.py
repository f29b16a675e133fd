#!/usr/bin/env python3
"""
NYC Building Compliance Sync - Entry Point

Aggregates HPD, DOB, DSNY, LL97 and 311 records for a building portfolio.

Usage:
    python main.py <portfolio.json> [options]

Examples:
    python main.py buildings.json
    python main.py buildings.json --building 14
    python main.py --list-sources

For more options:
    python main.py --help
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from nyc_compliance.compliance_sync import main

if __name__ == "__main__":
    main()
