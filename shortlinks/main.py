import logging
from contextlib import asynccontextmanager
from datetime import timezone

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from shortlinks import __version__, auth, crud, database, permissions, schemas, shortener, strikes
from shortlinks.config import Settings, format_duration, load_settings
from shortlinks.database import utcnow
from shortlinks.permissions import Capability
from shortlinks.retention import RetentionScheduler

logger = logging.getLogger("shortlinks")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )


# --- Dependencies ---
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


async def read_body(request: Request) -> bytes:
    # Decoded by the handlers, after their auth gates
    return await request.body()


def client_address(request: Request) -> str:
    return request.client.host if request.client else ""


# --- Read-only and status routes ---
meta_router = APIRouter()


def _wants_json(request: Request) -> bool:
    accept = request.headers.get("accept")
    if not accept:
        return False
    media_type = accept.split(",")[0].split(";")[0].strip().lower()
    if media_type == "application/json":
        return True
    if media_type in ("text/plain", "text/*", "*/*"):
        return False
    raise HTTPException(status_code=400, detail="Unsupported format requested")


def _summary(settings: Settings, title: str) -> str:
    return (
        f"Shortlinks v{__version__}{title}\n"
        "\n"
        f"IP recording: {'Enabled' if settings.record_ips else 'Disabled'};\n"
        f"Max amount of strikes: {settings.max_strikes};\n"
        f"Token authentication: {'Enabled' if settings.tokens_enabled else 'Disabled'};\n"
        f"Link creation requires authentication: {str(settings.creation_requires_auth).lower()};\n"
        "\n"
        f"Log level: {settings.log_level}\n"
    )


@meta_router.get("/l/config_info")
def config_info(request: Request, settings: Settings = Depends(get_settings)):
    if not _wants_json(request):
        return PlainTextResponse(_summary(settings, " configuration info"))
    info = schemas.ConfigInfo(
        service_version=__version__,
        max_strikes=settings.max_strikes,
        log_level=settings.log_level,
    )
    if settings.ip_recording:
        info.ip_recording = schemas.IpRecordingInfo(
            retention_period=format_duration(settings.ip_recording.retention_period),
            retention_check_period=settings.ip_recording.retention_check_period,
        )
    if settings.tokens:
        info.tokens = schemas.TokenConfigInfo(
            link_creation_requires_auth=settings.tokens.creation_requires_auth,
        )
    return info


@meta_router.get("/l/status", response_class=PlainTextResponse)
def service_status(request: Request, settings: Settings = Depends(get_settings)):
    text = _summary(settings, "")
    scheduler = request.app.state.retention
    if scheduler and scheduler.is_running:
        text += f"Next origin pruning: {scheduler.next_run().isoformat()}Z\n"
    return text


# --- Links ---
links_router = APIRouter()


@links_router.post("/l/create", status_code=201)
def create_link(
    request: Request,
    body: bytes = Depends(read_body),
    token: str | None = Depends(auth.get_bearer_token),
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    link_id = shortener.create_link(db, settings, body, client_address(request), token)
    return Response(status_code=201, headers={"Location": f"/l/{link_id}"})


@links_router.get("/l/{link_id}")
def redirect_link(link_id: str, db=Depends(get_db)):
    link = crud.get_link(db, link_id)
    if not link:
        raise HTTPException(status_code=404, detail="Not found")
    return RedirectResponse(url=link.link, status_code=302)


@links_router.get("/l/{link_id}/info", response_model=schemas.LinkInfo, response_model_exclude_none=True)
def link_info(
    link_id: str,
    token: str | None = Depends(auth.get_bearer_token),
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    link = crud.get_link(db, link_id)
    if not link:
        raise HTTPException(status_code=404, detail="Not found")

    created_by = None
    if token and settings.tokens_enabled and auth.check_permission(
        db, settings.master_token, token, Capability.VIEW_IPS
    ):
        blob = crud.get_origin(db, link.id)
        if blob is not None:
            try:
                created_by = strikes.decode_address(blob)
            except ValueError:
                logger.error("Stored origin of link %s is malformed", link.id)
                raise shortener.internal_error() from None

    return schemas.LinkInfo(
        id=link.id,
        hash=link.hash.hex(),
        link=link.link,
        created_at=link.created_at.replace(tzinfo=timezone.utc),
        created_by=created_by,
    )


# --- Tokens ---
tokens_router = APIRouter()


@tokens_router.post("/l/tokens/create", status_code=201, response_class=PlainTextResponse)
def create_token(
    params: schemas.CreateTokenParams,
    token: str | None = Depends(auth.get_bearer_token),
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    granted = auth.require_permission(db, settings.master_token, token, Capability.CREATE_TOKEN)
    requested = permissions.from_flags(
        admin=params.admin_perm,
        create_link=params.create_link_perm,
        create_token=params.create_token_perm,
        view_ips=params.view_ips_perm,
    )
    if not permissions.satisfies(granted, requested):
        raise HTTPException(status_code=403, detail="Cannot grant permissions you do not hold")

    expires_at = params.expires_at
    if expires_at is not None:
        if expires_at.tzinfo is not None:
            expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)
        if expires_at <= utcnow():
            raise HTTPException(status_code=400, detail="expiresAt must be in the future")

    value = auth.issue_token(db, requested, expires_at)
    return PlainTextResponse(value, status_code=201)


@tokens_router.post("/l/tokens/revoke")
def revoke_token(
    body: bytes = Depends(read_body),
    token: str | None = Depends(auth.get_bearer_token),
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        target = body.decode("utf-8").strip()
    except UnicodeDecodeError:
        target = None
    auth.authorize_revocation(db, settings.master_token, token, target or "")
    if not target:
        raise HTTPException(status_code=400, detail="Body must be a UTF-8 token value")
    if not auth.revoke_token(db, target):
        logger.info("Revocation requested for unknown token %s...", target[:6])
    return Response(status_code=200)


# --- Strikes (operator actions) ---
strikes_router = APIRouter()


def _origin_of(address: str) -> bytes:
    try:
        return strikes.encode_address(address)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid IP address") from None


def require_admin(
    token: str | None = Depends(auth.get_bearer_token),
    db=Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> None:
    auth.require_permission(db, settings.master_token, token, Capability.ADMIN)


@strikes_router.get("/l/strikes/{address}", response_model=schemas.StrikesOut, dependencies=[Depends(require_admin)])
def get_strikes(address: str, db=Depends(get_db)):
    return schemas.StrikesOut(address=address, amount=strikes.get_strikes(db, _origin_of(address)))


@strikes_router.post("/l/strikes/{address}", response_model=schemas.StrikesOut, dependencies=[Depends(require_admin)])
def add_strike(address: str, db=Depends(get_db)):
    return schemas.StrikesOut(address=address, amount=strikes.add_strike(db, _origin_of(address)))


@strikes_router.put("/l/strikes/{address}", response_model=schemas.StrikesOut, dependencies=[Depends(require_admin)])
def set_strikes(address: str, body: schemas.StrikesIn, db=Depends(get_db)):
    return schemas.StrikesOut(address=address, amount=strikes.set_strikes(db, _origin_of(address), body.amount))


# --- App ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database.init_tables(app.state.engine)

    scheduler = None
    if settings.ip_recording:
        scheduler = RetentionScheduler(
            app.state.session_factory,
            settings.ip_recording.retention_period,
            settings.ip_recording.retention_check_period,
        )
        await scheduler.start()
    app.state.retention = scheduler

    logger.info("Service started")
    yield

    if scheduler:
        await scheduler.stop()
        app.state.retention = None
    app.state.engine.dispose()
    logger.info("Service stopped")


async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Shortlinks",
        description="Short links with capability tokens and abuse mitigation.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = database.create_db_engine(settings)
    app.state.session_factory = database.make_session_factory(app.state.engine)
    app.state.retention = None
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)

    # config_info and status must be matched before /l/{link_id}
    app.include_router(meta_router)
    if settings.tokens_enabled:
        app.include_router(tokens_router)
        if settings.record_ips:
            app.include_router(strikes_router)
    app.include_router(links_router)
    return app


def main():
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
