from __future__ import annotations

import base64
import json
import logging
import secrets
import string
import time
from typing import Callable, Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from sketchroom.errors import DecodeFailure
from sketchroom.protocol.constants import (
    GUEST_ID_PREFIX,
    GUEST_NAME_PREFIX,
    KIND_GUEST,
    KIND_REGISTERED,
)
from sketchroom.protocol.messages import Credential, Identity
from sketchroom.server.config import Settings, get_settings

LOGGER = logging.getLogger(__name__)

_GUEST_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def _now() -> float:
    return time.time()


def ttl_for(kind: str, settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    if kind == KIND_REGISTERED:
        return settings.registered_token_ttl_s
    if kind == KIND_GUEST:
        return settings.guest_token_ttl_s
    raise ValueError(f"unknown credential kind: {kind!r}")


def build_credential(
    identity: Identity,
    kind: str,
    *,
    now: float | None = None,
    settings: Settings | None = None,
) -> Credential:
    issued_at = int(_now() if now is None else now)
    return Credential(
        subject_id=identity.id,
        display_name=identity.display_name,
        anonymous=identity.anonymous,
        issued_at=issued_at,
        expires_at=issued_at + ttl_for(kind, settings),
        email=identity.email,
    )


def encode(
    identity: Identity,
    kind: str,
    *,
    now: float | None = None,
    settings: Settings | None = None,
) -> str:
    """
    Mint a token for `identity`.

    - **registered**: signed compact JWT (7 day window by default)
    - **guest**: base64 of canonical JSON (24 hour window by default)
    """
    settings = settings or get_settings()
    claims = build_credential(identity, kind, now=now, settings=settings).model_dump(
        by_alias=True, exclude_none=True
    )
    if kind == KIND_REGISTERED:
        return jwt.encode(claims, settings.token_secret, algorithm=settings.token_algorithm)
    raw = json.dumps(claims, separators=(",", ":"), sort_keys=True)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def _claims_to_credential(claims: object) -> Credential:
    if not isinstance(claims, dict):
        raise DecodeFailure("token payload is not an object")
    try:
        return Credential.model_validate(claims)
    except PydanticValidationError as e:
        raise DecodeFailure(f"bad claims: {e.error_count()} error(s)") from e


def _decode_jwt(token: str) -> Credential:
    # Clients never hold the issuer key; expiry is judged by `is_valid`.
    try:
        claims = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False, "verify_iat": False},
        )
    except (jwt.PyJWTError, ValueError, TypeError) as e:
        raise DecodeFailure(f"not a JWT: {e}") from e
    return _claims_to_credential(claims)


def _decode_b64_json(token: str) -> Credential:
    padded = token.strip() + "=" * (-len(token.strip()) % 4)
    try:
        raw = base64.b64decode(padded, validate=True)
        claims = json.loads(raw.decode("utf-8"))
    except (ValueError, TypeError) as e:
        raise DecodeFailure(f"not base64 JSON: {e}") from e
    return _claims_to_credential(claims)


# Tried in order; the first format that yields a credential wins.
_DECODE_ATTEMPTS: tuple[tuple[str, Callable[[str], Credential]], ...] = (
    ("jwt", _decode_jwt),
    ("b64json", _decode_b64_json),
)


def decode(token: object) -> Optional[Credential]:
    """Decode either token format. Returns None for anything undecodable; never raises."""
    if not isinstance(token, str) or not token.strip():
        return None
    for fmt, attempt in _DECODE_ATTEMPTS:
        try:
            return attempt(token)
        except DecodeFailure as e:
            LOGGER.debug("credential decode (%s) failed: %s", fmt, e)
        except Exception:
            LOGGER.debug("credential decode (%s) crashed", fmt, exc_info=True)
    return None


def is_valid(token: object, *, now: float | None = None) -> bool:
    cred = decode(token)
    if cred is None:
        return False
    return cred.is_valid_at(_now() if now is None else now)


def identity_from_token(token: object) -> Optional[Identity]:
    cred = decode(token)
    return cred.to_identity() if cred is not None else None


def generate_guest_identity() -> Identity:
    suffix = "".join(secrets.choice(_GUEST_SUFFIX_ALPHABET) for _ in range(8))
    return Identity(
        id=f"{GUEST_ID_PREFIX}{suffix}",
        display_name=f"{GUEST_NAME_PREFIX}{suffix}",
        anonymous=True,
    )
