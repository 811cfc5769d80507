#!/usr/bin/env python
"""
Import market snapshots from a CSV export.

Usage:
    python scripts/import_snapshots.py snapshots.csv
"""
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from vinyl_pricing.data.import_snapshots import main

if __name__ == "__main__":
    sys.exit(main())
