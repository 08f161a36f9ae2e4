import hmac
from datetime import datetime, timedelta, timezone

from fastapi import Header, HTTPException
from jose import JWTError, jwt

from guiche import config

ALGORITHM = "HS256"
ADMIN_SUBJECT = "admin"


def check_admin_password(password: str) -> bool:
    expected = config.require("ADMIN_PASSWORD")
    return hmac.compare_digest(password.encode(), expected.encode())


def issue_admin_token() -> str:
    expires = datetime.now(timezone.utc) + timedelta(minutes=config.admin_token_ttl_minutes())
    return jwt.encode(
        {"sub": ADMIN_SUBJECT, "exp": expires},
        config.require("JWT_SECRET"),
        algorithm=ALGORITHM,
    )


def verify_token(authorization: str = Header(...)):
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("not a bearer token")
        claims = jwt.decode(token, config.require("JWT_SECRET"), algorithms=[ALGORITHM])
        if claims.get("sub") != ADMIN_SUBJECT:
            raise ValueError("not an admin token")
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")
