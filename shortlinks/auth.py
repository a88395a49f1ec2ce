import hmac
import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from shortlinks import models, permissions
from shortlinks.database import utcnow
from shortlinks.ids import TOKEN_LENGTH, new_display_id
from shortlinks.permissions import Capability

logger = logging.getLogger("shortlinks.auth")

DEFAULT_TOKEN_LIFETIME = timedelta(days=365)
ALL_CAPABILITIES = (
    Capability.ADMIN | Capability.CREATE_LINK | Capability.CREATE_TOKEN | Capability.VIEW_IPS
)

bearer_scheme = HTTPBearer(auto_error=False)


def get_bearer_token(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str | None:
    if credentials is None:
        return None
    return credentials.credentials


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _is_master(master_token: str | None, presented: str) -> bool:
    return bool(master_token) and hmac.compare_digest((presented or "").encode(), master_token.encode())


def granted_capabilities(db: Session, master_token: str | None, presented: str) -> Capability:
    """Capabilities of ``presented``; 401 if it is neither the master token nor a live stored token."""
    if _is_master(master_token, presented):
        return ALL_CAPABILITIES
    row = (
        db.query(models.Token)
        .filter(models.Token.token == presented, models.Token.expires_at > utcnow())
        .first()
    )
    if row is None:
        raise _unauthorized()
    return permissions.from_row(row)


def check_permission(db: Session, master_token: str | None, presented: str, requested: Capability) -> bool:
    return permissions.satisfies(granted_capabilities(db, master_token, presented), requested)


def require_permission(
    db: Session, master_token: str | None, presented: str | None, requested: Capability
) -> Capability:
    if not presented:
        raise _unauthorized()
    granted = granted_capabilities(db, master_token, presented)
    if not permissions.satisfies(granted, requested):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return granted


def issue_token(db: Session, caps: Capability, expires_at: datetime | None = None) -> str:
    created_at = utcnow()
    if expires_at is None:
        expires_at = created_at + DEFAULT_TOKEN_LIFETIME
    elif expires_at.tzinfo is not None:
        expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)

    value = new_display_id(TOKEN_LENGTH)
    db.add(
        models.Token(
            token=value,
            created_at=created_at,
            expires_at=expires_at,
            **permissions.to_columns(caps),
        )
    )
    db.commit()
    logger.info("Issued token %s... caps=%s expires_at=%s", value[:6], caps, expires_at)
    return value


def revoke_token(db: Session, target: str) -> bool:
    row = db.get(models.Token, target)
    if row is None:
        return False
    row.expires_at = utcnow()
    db.commit()
    logger.info("Revoked token %s...", target[:6])
    return True


def authorize_revocation(db: Session, master_token: str | None, presented: str | None, target: str) -> None:
    # A token may always revoke itself
    if presented and hmac.compare_digest(presented.encode(), target.encode()):
        return
    require_permission(db, master_token, presented, Capability.ADMIN)
