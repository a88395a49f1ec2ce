"""Link creation: authorization, abuse check, dedup and persistence.

Gates run strictly in order and each one rejects with its own status:
auth (401/403), strikes (403), body decoding and URL parsing (400). Storage failures are
logged and surface as a bare 500.
"""
import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from shortlinks import auth, crud, strikes
from shortlinks.config import Settings
from shortlinks.ids import LINK_ID_LENGTH, canonical_url, fingerprint, new_display_id
from shortlinks.permissions import Capability

logger = logging.getLogger("shortlinks.shortener")

MAX_ID_ATTEMPTS = 5


def internal_error() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")


def create_link(
    db: Session,
    settings: Settings,
    target_url: bytes | str,
    requester: str,
    token: str | None = None,
) -> str:
    if settings.creation_requires_auth:
        auth.require_permission(db, settings.master_token, token, Capability.CREATE_LINK)

    created_by = None
    if settings.record_ips:
        try:
            created_by = strikes.encode_address(requester)
        except ValueError:
            logger.error("Cannot encode requester address %r", requester)
            raise internal_error() from None
        try:
            allowed = strikes.check_strikes(db, created_by, settings.max_strikes)
        except SQLAlchemyError:
            logger.exception("Error looking up strikes for %s", requester)
            raise internal_error() from None
        if not allowed:
            logger.info("Rejected link creation from %s: too many strikes", requester)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Too many strikes")

    if isinstance(target_url, bytes):
        try:
            target_url = target_url.decode("utf-8")
        except UnicodeDecodeError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body must be UTF-8 text") from None
    try:
        url = canonical_url(target_url)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None

    digest = fingerprint(url)
    try:
        return _store_link(db, url, digest, created_by)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error storing link for %s", url)
        raise internal_error() from None


def _store_link(db: Session, url: str, digest: bytes, created_by: bytes | None) -> str:
    existing = crud.find_link_id_by_hash(db, digest)
    if existing is not None:
        logger.debug("Link for %s already exists as %s", url, existing)
        return existing

    for attempt in range(1, MAX_ID_ATTEMPTS + 1):
        link_id = new_display_id(LINK_ID_LENGTH)
        try:
            crud.insert_link(db, link_id, digest, url, created_by)
        except IntegrityError:
            db.rollback()
            # Either a concurrent request stored the same URL, or the id is taken
            existing = crud.find_link_id_by_hash(db, digest)
            if existing is not None:
                return existing
            logger.warning("Link id collision on %s (attempt %d)", link_id, attempt)
            continue
        logger.info("Created link %s -> %s", link_id, url)
        return link_id

    logger.error("Gave up allocating a link id after %d attempts", MAX_ID_ATTEMPTS)
    raise internal_error()
