import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import Header, HTTPException
from jose import JWTError, jwt

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env")


def _decode_actor(authorization: str) -> int:
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("unsupported scheme")
        claims = jwt.decode(token, os.getenv("JWT_SECRET"), algorithms=["HS256"])
        return int(claims["sub"])
    except (ValueError, KeyError, TypeError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")


def verify_token(authorization: str = Header(...)) -> int:
    """Host user id of an authenticated caller."""
    return _decode_actor(authorization)


def optional_actor(authorization: Optional[str] = Header(None)) -> Optional[int]:
    # Guests check out without a token
    if authorization is None:
        return None
    return _decode_actor(authorization)
