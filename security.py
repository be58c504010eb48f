import hashlib
import hmac
import logging
import secrets
import sqlite3
import threading
import uuid
from collections import defaultdict
from time import time
from typing import Optional

from fastapi import Request

from config import (
    SESSION_COOKIE_NAME,
    SESSION_TTL_SECONDS,
    CSRF_COOKIE_NAME,
    SECRET_KEY,
    _utc_now_storage,
)
from db import get_db

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# In-memory rate limiting (per-IP, resets on server restart)
# ---------------------------------------------------------------------------
_rate_lock = threading.Lock()
_login_buckets: dict[str, list[float]] = defaultdict(list)

_LOGIN_WINDOW = 300   # 5 minutes
_LOGIN_MAX = 10       # attempts per window per IP


def _check_rate_limit(bucket: dict, ip: str, window: int, max_attempts: int) -> bool:
    """Return True if the request should be allowed, False if rate limited."""
    now = time()
    with _rate_lock:
        bucket[ip] = [t for t in bucket[ip] if now - t < window]
        if len(bucket[ip]) >= max_attempts:
            return False
        bucket[ip].append(now)
        return True


def _is_login_allowed(ip: str) -> bool:
    return _check_rate_limit(_login_buckets, ip, _LOGIN_WINDOW, _LOGIN_MAX)


def _request_origin_host(request: Request) -> str:
    header = request.headers.get("origin") or request.headers.get("referer") or ""
    if "://" not in header:
        return ""
    return header.split("://", 1)[1].split("/", 1)[0].lower()


def _is_same_origin(request: Request) -> bool:
    origin_host = _request_origin_host(request)
    if not origin_host:
        return False
    return origin_host == request.url.netloc.lower()


def _ensure_csrf_cookie(request: Request, response):
    if request.cookies.get(CSRF_COOKIE_NAME):
        return response
    response.set_cookie(
        CSRF_COOKIE_NAME,
        secrets.token_urlsafe(32),
        httponly=False,
        samesite="lax",
        secure=request.url.scheme == "https",
    )
    return response


def _csrf_header_valid(request: Request) -> bool:
    cookie_token = request.cookies.get(CSRF_COOKIE_NAME, "")
    header_token = request.headers.get("x-csrf-token", "")
    return bool(cookie_token) and hmac.compare_digest(cookie_token, header_token)


def _hash_password(plaintext: str) -> str:
    salt = secrets.token_bytes(32)
    dk = hashlib.pbkdf2_hmac("sha256", plaintext.encode(), salt, 480_000)
    return salt.hex() + ":" + dk.hex()


def _verify_password(plaintext: str, stored: str) -> bool:
    try:
        salt_hex, dk_hex = stored.split(":")
        salt, expected = bytes.fromhex(salt_hex), bytes.fromhex(dk_hex)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac("sha256", plaintext.encode(), salt, 480_000)
    return hmac.compare_digest(dk, expected)


def _make_session_token(user_id: str, password_hash: str) -> str:
    exp = int(time()) + SESSION_TTL_SECONDS
    nonce = secrets.token_urlsafe(16)
    payload = f"{user_id}:{exp}:{nonce}"
    sig = hmac.new(SECRET_KEY.encode(), f"{payload}:{password_hash}".encode(), "sha256").hexdigest()
    return f"{payload}:{sig}"


def _verify_session_token(token: str, user_id: str, password_hash: str) -> bool:
    try:
        token_user_id, exp_s, nonce, sig = token.split(":", 3)
        exp = int(exp_s)
    except ValueError:
        return False
    if token_user_id != user_id or exp < int(time()):
        return False
    payload = f"{token_user_id}:{exp}:{nonce}"
    expected = hmac.new(
        SECRET_KEY.encode(),
        f"{payload}:{password_hash}".encode(),
        "sha256",
    ).hexdigest()
    return hmac.compare_digest(sig, expected)


def _set_session_cookie(response, request: Request, user_id: str, password_hash: str):
    response.set_cookie(
        SESSION_COOKIE_NAME,
        _make_session_token(user_id, password_hash),
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
        max_age=SESSION_TTL_SECONDS,
    )
    return response


def _get_authenticated_user(request: Request) -> Optional[dict]:
    """Resolve the session cookie to ``{"id", "email"}``, or None when signed out."""
    cookie = request.cookies.get(SESSION_COOKIE_NAME, "")
    if not cookie:
        return None
    parts = cookie.split(":", 3)
    if len(parts) < 4:
        return None
    token_user_id = parts[0]
    with get_db() as conn:
        row = conn.execute(
            "SELECT id, email, password_hash FROM users WHERE id = ?", (token_user_id,)
        ).fetchone()
    if not row or not row["password_hash"]:
        return None
    if not _verify_session_token(cookie, token_user_id, row["password_hash"]):
        return None
    return {"id": row["id"], "email": row["email"]}


def _has_any_user() -> bool:
    """Return True if at least one account exists."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT 1 FROM users WHERE password_hash != '' LIMIT 1"
        ).fetchone()
    return row is not None


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _create_user(email: str, password: str) -> Optional[dict]:
    """Insert a new account; returns the row as a dict, or None if the email is taken."""
    user_id = str(uuid.uuid4())
    password_hash = _hash_password(password)
    try:
        with get_db() as conn:
            conn.execute(
                "INSERT INTO users (id, email, password_hash, created_at) VALUES (?,?,?,?)",
                (user_id, _normalize_email(email), password_hash, _utc_now_storage()),
            )
            conn.commit()
    except sqlite3.IntegrityError:
        logger.info("Sign-up rejected: email already registered")
        return None
    return {"id": user_id, "email": _normalize_email(email), "password_hash": password_hash}


def _find_user_by_email(email: str):
    with get_db() as conn:
        return conn.execute(
            "SELECT id, email, password_hash FROM users WHERE email = ?",
            (_normalize_email(email),),
        ).fetchone()
