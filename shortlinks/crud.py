from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from shortlinks import models
from shortlinks.database import utcnow


def get_link(db: Session, link_id: str) -> models.Link | None:
    return db.get(models.Link, link_id)


def find_link_id_by_hash(db: Session, digest: bytes) -> str | None:
    link = db.query(models.Link).filter_by(hash=digest).first()
    return link.id if link else None


def insert_link(db: Session, link_id: str, digest: bytes, url: str, created_by: bytes | None = None) -> None:
    """Insert a link and, when given, its origin in a single transaction."""
    db.add(models.Link(id=link_id, hash=digest, link=url, created_at=utcnow()))
    if created_by is not None:
        # links must hit the database before the origin row that references it
        db.flush()
        db.add(models.Origin(id=link_id, created_by=created_by))
    db.commit()


def get_origin(db: Session, link_id: str) -> bytes | None:
    row = db.get(models.Origin, link_id)
    return row.created_by if row else None


def prune_origins(db: Session, retention_period: timedelta, now: datetime | None = None) -> int:
    """Delete origins of links created before ``now - retention_period``. Links stay."""
    cutoff = (now or utcnow()) - retention_period
    expired = select(models.Link.id).where(models.Link.created_at < cutoff)
    result = db.execute(
        delete(models.Origin)
        .where(models.Origin.id.in_(expired))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0
