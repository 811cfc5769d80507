"""
Tests for the CSV snapshot importer.
"""
from sqlalchemy import select

from vinyl_pricing.data.import_snapshots import import_snapshots_csv
from vinyl_pricing.db.models import MarketSnapshotRecord

HEADER = "release_id,source,stat_low,stat_median,stat_high,sample_size,fetched_at\n"


def write_csv(tmp_path, body, header=HEADER):
    path = tmp_path / "snapshots.csv"
    path.write_text(header + body)
    return path


def stored(session_factory):
    with session_factory() as session:
        return session.scalars(select(MarketSnapshotRecord).order_by(MarketSnapshotRecord.fetched_at)).all()


def test_import_valid_and_invalid_rows(tmp_path, session_factory, release, catalog):
    path = write_csv(tmp_path, (
        "rel-1,discogs,100,140,200,12,2025-05-01T00:00:00Z\n"
        "rel-1,EBAY,,155,,,2025-05-20T00:00:00Z\n"
        "rel-9,DISCOGS,1,2,3,1,2025-05-01T00:00:00Z\n"
        "rel-1,AMAZON,1,2,3,1,2025-05-01T00:00:00Z\n"
        "rel-1,DISCOGS,1,2,3,1,not-a-date\n"
        "rel-1,DISCOGS,0,,-4,1,2025-05-01T00:00:00Z\n"
    ))

    report = import_snapshots_csv(path, session_factory)

    assert report["status"] == "success"
    assert report["metrics"] == {"rows_read": 6, "rows_imported": 2, "rows_skipped": 4}
    assert len(report["warnings"]) == 4
    assert report["warnings"][0] == "Row 4: unknown release 'rel-9'"
    assert report["input_files"]["snapshots"]["hash"]

    rows = stored(session_factory)
    assert [r.source for r in rows] == ['DISCOGS', 'EBAY']
    assert rows[0].sample_size == 12
    assert rows[1].stat_low is None

    # The newer import is what the catalog reports as latest
    assert catalog.latest_snapshot('rel-1').stat_median == 155


def test_missing_file(tmp_path, session_factory):
    report = import_snapshots_csv(tmp_path / "nope.csv", session_factory)

    assert report["status"] == "failed"
    assert "not found" in report["errors"][0]


def test_missing_columns(tmp_path, session_factory):
    path = write_csv(tmp_path, "rel-1,140\n", header="release_id,stat_median\n")
    report = import_snapshots_csv(path, session_factory)

    assert report["status"] == "failed"
    assert "source" in report["errors"][0]
    assert "fetched_at" in report["errors"][0]
    assert stored(session_factory) == []
