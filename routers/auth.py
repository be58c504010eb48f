import html
import logging

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from config import MIN_PASSWORD_LEN, SESSION_COOKIE_NAME
from security import (
    _create_user,
    _find_user_by_email,
    _get_authenticated_user,
    _has_any_user,
    _is_login_allowed,
    _normalize_email,
    _set_session_cookie,
    _verify_password,
)
from ui import PAGE_STYLE

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/signup", response_class=HTMLResponse)
def signup_get(error: str = ""):
    error_banner = f'<div class="alert">{html.escape(error)}</div>' if error else ""
    return f"""<!DOCTYPE html>
<html>
<head>{PAGE_STYLE}<title>Create Account</title></head>
<body>
  <div class="container narrow">
    <h1>Create Your Account</h1>
    <p style="color:#555; font-size:14px; margin-bottom:16px;">
      Track which medications you took each day of the week.
    </p>
    {error_banner}
    <form method="post" action="/signup">
      <div class="form-group">
        <label for="email">Email</label>
        <input type="email" id="email" name="email"
          placeholder="you@example.com" required autocomplete="email">
      </div>
      <div class="form-group">
        <label for="new_password">Password</label>
        <input type="password" id="new_password" name="new_password"
          placeholder="At least {MIN_PASSWORD_LEN} characters" required autocomplete="new-password">
      </div>
      <div class="form-group">
        <label for="confirm_password">Confirm Password</label>
        <input type="password" id="confirm_password" name="confirm_password"
          placeholder="Repeat password" required autocomplete="new-password">
      </div>
      <button type="submit" class="btn-primary">Sign Up</button>
    </form>
    <p style="margin-top:16px; font-size:13px; color:#6b7280;">
      Already have an account? <a href="/login" style="color:#3b82f6;">Sign in</a>
    </p>
  </div>
</body>
</html>
"""


@router.post("/signup")
def signup_post(
    request: Request,
    email: str = Form(""),
    new_password: str = Form(""),
    confirm_password: str = Form(""),
):
    email = _normalize_email(email)
    if not email or "@" not in email:
        return RedirectResponse(url="/signup?error=A+valid+email+is+required", status_code=303)
    if len(new_password) < MIN_PASSWORD_LEN:
        return RedirectResponse(
            url=f"/signup?error=Password+must+be+at+least+{MIN_PASSWORD_LEN}+characters",
            status_code=303,
        )
    if new_password != confirm_password:
        return RedirectResponse(url="/signup?error=Passwords+do+not+match", status_code=303)
    user = _create_user(email, new_password)
    if user is None:
        return RedirectResponse(url="/signup?error=Email+already+registered", status_code=303)
    logger.info("Created account %s", user["id"])
    resp = RedirectResponse(url="/", status_code=303)
    _set_session_cookie(resp, request, user["id"], user["password_hash"])
    return resp


@router.get("/login", response_class=HTMLResponse)
def login_get(request: Request, error: str = ""):
    if not _has_any_user():
        return RedirectResponse(url="/signup", status_code=303)
    if _get_authenticated_user(request):
        return RedirectResponse(url="/", status_code=303)
    error_banner = f'<div class="alert">{html.escape(error)}</div>' if error else ""
    return f"""<!DOCTYPE html>
<html>
<head>{PAGE_STYLE}<title>Sign In</title></head>
<body>
  <div class="container narrow">
    <h1>Medication Tracker</h1>
    <p style="color:#555; font-size:14px; margin-bottom:16px;">Sign in to continue.</p>
    {error_banner}
    <form method="post" action="/login">
      <div class="form-group">
        <label for="email">Email</label>
        <input type="email" id="email" name="email" required autocomplete="email">
      </div>
      <div class="form-group">
        <label for="password">Password</label>
        <input type="password" id="password" name="password" required autocomplete="current-password">
      </div>
      <button type="submit" class="btn-primary">Sign In</button>
    </form>
    <p style="margin-top:16px; font-size:13px; color:#6b7280;">
      No account yet? <a href="/signup" style="color:#3b82f6;">Sign up</a>
    </p>
  </div>
</body>
</html>
"""


@router.post("/login")
def login_post(request: Request, email: str = Form(""), password: str = Form("")):
    ip = request.client.host if request.client else "unknown"
    if not _is_login_allowed(ip):
        logger.warning("Login rate limit hit for %s", ip)
        return RedirectResponse(url="/login?error=Too+many+attempts.+Please+wait+before+trying+again.", status_code=303)
    row = _find_user_by_email(email)
    if not row or not row["password_hash"]:
        return RedirectResponse(url="/login?error=Incorrect+email+or+password", status_code=303)
    if not _verify_password(password, row["password_hash"]):
        return RedirectResponse(url="/login?error=Incorrect+email+or+password", status_code=303)
    resp = RedirectResponse(url="/", status_code=303)
    _set_session_cookie(resp, request, row["id"], row["password_hash"])
    return resp


@router.post("/logout")
def logout():
    resp = RedirectResponse(url="/login", status_code=303)
    resp.delete_cookie(SESSION_COOKIE_NAME)
    return resp


@router.get("/api/session")
def api_session(request: Request):
    return JSONResponse({"user": getattr(request.state, "user", None)})
