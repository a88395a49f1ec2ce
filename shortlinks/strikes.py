import ipaddress
import logging

from sqlalchemy.orm import Session

from shortlinks import models

logger = logging.getLogger("shortlinks.strikes")


def encode_address(host: str) -> bytes:
    """Packed IP bytes: 4 for IPv4, 16 for IPv6. Raises ``ValueError`` otherwise."""
    return ipaddress.ip_address(host).packed


def decode_address(blob: bytes) -> str:
    if len(blob) not in (4, 16):
        raise ValueError(f"Address blob has invalid length {len(blob)}")
    return str(ipaddress.ip_address(bytes(blob)))


def get_strikes(db: Session, origin: bytes) -> int:
    row = db.get(models.Strike, origin)
    return row.amount if row else 0


def check_strikes(db: Session, origin: bytes, max_strikes: int) -> bool:
    """True if ``origin`` may still create links."""
    return get_strikes(db, origin) < max_strikes


def add_strike(db: Session, origin: bytes) -> int:
    row = db.get(models.Strike, origin)
    if row is None:
        row = models.Strike(origin=origin, amount=0)
        db.add(row)
    row.amount = (row.amount or 0) + 1
    db.commit()
    logger.info("Strike added for %s, now %d", decode_address(origin), row.amount)
    return row.amount


def set_strikes(db: Session, origin: bytes, amount: int) -> int:
    row = db.get(models.Strike, origin)
    if row is None:
        row = models.Strike(origin=origin, amount=amount)
        db.add(row)
    else:
        row.amount = amount
    db.commit()
    logger.info("Strikes for %s set to %d", decode_address(origin), amount)
    return amount
