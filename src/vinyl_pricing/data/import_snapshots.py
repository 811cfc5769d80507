"""
Snapshot Importer - loads market snapshots from a CSV export.

Expected columns:
    release_id, source, stat_low, stat_median, stat_high, sample_size, fetched_at

Invalid rows are skipped with a warning. The remaining rows are written in
one transaction.
"""
import argparse
import hashlib
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..config.logging import init_logging
from ..db.models import MarketSnapshotRecord, ReleaseRecord
from ..db.session import build_session_factory

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['release_id', 'source', 'fetched_at']
STAT_COLUMNS = ['stat_low', 'stat_median', 'stat_high']
VALID_SOURCES = {'DISCOGS', 'EBAY'}


def get_file_hash(path: Path) -> str:
    """Get SHA256 hash of a file."""
    if not path.exists():
        return ""
    with open(path, 'rb') as f:
        return hashlib.sha256(f.read()).hexdigest()[:12]


def _optional(value):
    return None if pd.isna(value) else value


def import_snapshots_csv(path, session_factory: sessionmaker, verbose: bool = False) -> dict:
    """
    Import market snapshots from a CSV file.

    Args:
        path: CSV file to read
        session_factory: SQLAlchemy session factory
        verbose: Print progress messages

    Returns:
        Import report dictionary
    """
    path = Path(path)
    report = {
        "timestamp": datetime.now().isoformat(),
        "status": "pending",
        "input_files": {},
        "metrics": {},
        "warnings": [],
        "errors": []
    }

    if not path.exists():
        msg = f"CRITICAL ERROR: {path} not found."
        report["errors"].append(msg)
        report["status"] = "failed"
        logger.error(msg)
        return report

    report["input_files"]["snapshots"] = {
        "path": str(path),
        "hash": get_file_hash(path)
    }

    try:
        df = pd.read_csv(path, dtype=str)
    except (OSError, ValueError) as e:
        msg = f"ERROR: Failed to read {path}. {e}"
        report["errors"].append(msg)
        report["status"] = "failed"
        logger.error(msg)
        return report

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        msg = f"ERROR: Missing required columns: {', '.join(missing)}"
        report["errors"].append(msg)
        report["status"] = "failed"
        logger.error(msg)
        return report

    report["metrics"]["rows_read"] = len(df)

    # Normalize
    for col in STAT_COLUMNS + ['sample_size']:
        df[col] = pd.to_numeric(df[col], errors='coerce') if col in df.columns else float('nan')
    df['release_id'] = df['release_id'].astype(str).str.strip()
    df['source'] = df['source'].astype(str).str.strip().str.upper()
    df['fetched_at'] = pd.to_datetime(df['fetched_at'], errors='coerce', utc=True)

    with session_factory() as session:
        known_ids = set(session.scalars(select(ReleaseRecord.id)).all())

    records = []
    for idx, row in df.iterrows():
        line = idx + 2  # header is line 1
        if row['release_id'] not in known_ids:
            report["warnings"].append(f"Row {line}: unknown release '{row['release_id']}'")
            continue
        if row['source'] not in VALID_SOURCES:
            report["warnings"].append(f"Row {line}: invalid source '{row['source']}'")
            continue
        if pd.isna(row['fetched_at']):
            report["warnings"].append(f"Row {line}: invalid fetched_at")
            continue
        stats = {c: _optional(row[c]) for c in STAT_COLUMNS}
        if not any(v is not None and v > 0 for v in stats.values()):
            report["warnings"].append(f"Row {line}: no positive statistic")
            continue

        sample_size = _optional(row['sample_size'])
        records.append(MarketSnapshotRecord(
            release_id=row['release_id'],
            source=row['source'],
            stat_low=float(stats['stat_low']) if stats['stat_low'] is not None else None,
            stat_median=float(stats['stat_median']) if stats['stat_median'] is not None else None,
            stat_high=float(stats['stat_high']) if stats['stat_high'] is not None else None,
            sample_size=int(sample_size) if sample_size is not None else None,
            fetched_at=row['fetched_at'].to_pydatetime(),
        ))

    try:
        with session_factory() as session, session.begin():
            session.add_all(records)
    except SQLAlchemyError as e:
        msg = f"ERROR: Failed to store snapshots. {e}"
        report["errors"].append(msg)
        report["status"] = "failed"
        logger.exception("Snapshot import failed for %s", path)
        return report

    report["metrics"]["rows_imported"] = len(records)
    report["metrics"]["rows_skipped"] = len(df) - len(records)
    report["status"] = "success"

    for warning in report["warnings"]:
        logger.warning(warning)
    logger.info("Imported %d snapshots from %s (%d skipped)", len(records), path, len(df) - len(records))
    if verbose:
        print(f"\nIMPORT COMPLETE: {len(records)} snapshots imported, {len(df) - len(records)} skipped.")

    return report


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Import market snapshots from CSV")
    parser.add_argument("csv_path", help="CSV file with market snapshots")
    args = parser.parse_args(argv)

    init_logging()
    report = import_snapshots_csv(args.csv_path, build_session_factory(), verbose=True)
    return 0 if report["status"] == "success" else 1


if __name__ == "__main__":
    raise SystemExit(main())
