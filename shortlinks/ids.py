import hashlib
import secrets

from pydantic import AnyUrl, TypeAdapter, ValidationError

# Base-58: no 0, O, I or l
ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

LINK_ID_LENGTH = 7
TOKEN_LENGTH = 44

_url_adapter = TypeAdapter(AnyUrl)


def new_display_id(length: int = LINK_ID_LENGTH) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def canonical_url(raw: str) -> str:
    """Validate ``raw`` as an absolute URI and return its canonical string form.

    Raises ``ValueError`` when the URL is not structurally valid.
    """
    candidate = (raw or "").strip()
    if not candidate:
        raise ValueError("URL is required")
    try:
        url = _url_adapter.validate_python(candidate)
    except ValidationError as e:
        raise ValueError(f"Invalid URL: {candidate!r}") from e
    if not url.host:
        raise ValueError(f"URL has no host: {candidate!r}")
    return str(url)


def fingerprint(url: str) -> bytes:
    return hashlib.sha256(url.encode("utf-8")).digest()
