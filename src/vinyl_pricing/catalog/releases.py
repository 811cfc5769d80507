"""
Release lookup and market snapshot reads.

Releases and snapshots are written by the catalog/ingestion side; the
pricing engine only reads them.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from ..db.models import MarketSnapshotRecord, ReleaseRecord
from ..errors import NotFoundError


@dataclass(frozen=True)
class Release:
    id: str
    artist: str
    title: str
    catalog_number: Optional[str] = None
    barcode: Optional[str] = None
    discogs_id: Optional[int] = None

    @property
    def search_keywords(self) -> str:
        """Marketplace search query for this release."""
        parts = [self.artist, self.title]
        if self.catalog_number:
            parts.append(self.catalog_number)
        return " ".join(p for p in parts if p)


@dataclass(frozen=True)
class MarketSnapshot:
    release_id: str
    source: str
    stat_low: Optional[float]
    stat_median: Optional[float]
    stat_high: Optional[float]
    fetched_at: datetime
    sample_size: Optional[int] = None

    def stat(self, statistic: str) -> Optional[float]:
        return {
            'low': self.stat_low,
            'median': self.stat_median,
            'high': self.stat_high,
        }.get(statistic)


class ReleaseCatalog:
    """Read-only access to releases and their latest market snapshot."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def find_release(self, release_id: str) -> Optional[Release]:
        with self.session_factory() as session:
            record = session.get(ReleaseRecord, str(release_id))
            if record is None:
                return None
            return Release(
                id=record.id,
                artist=record.artist,
                title=record.title,
                catalog_number=record.catalog_number,
                barcode=record.barcode,
                discogs_id=record.discogs_id,
            )

    def get_release(self, release_id: str) -> Release:
        """Release by id; NotFoundError if it does not exist."""
        if not release_id:
            raise NotFoundError('Release not found', code='release_not_found')
        release = self.find_release(release_id)
        if release is None:
            raise NotFoundError(f"Release {release_id} not found", code='release_not_found')
        return release

    def latest_snapshot(self, release_id: str) -> Optional[MarketSnapshot]:
        """Most recently fetched snapshot for the release, any source."""
        with self.session_factory() as session:
            record = session.scalars(
                select(MarketSnapshotRecord)
                .where(MarketSnapshotRecord.release_id == str(release_id))
                .order_by(MarketSnapshotRecord.fetched_at.desc())
                .limit(1)
            ).first()
            if record is None:
                return None
            return MarketSnapshot(
                release_id=record.release_id,
                source=record.source,
                stat_low=record.stat_low,
                stat_median=record.stat_median,
                stat_high=record.stat_high,
                fetched_at=record.fetched_at,
                sample_size=record.sample_size,
            )
