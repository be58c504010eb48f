import html
from datetime import date
from typing import Optional
from urllib.parse import quote, quote_plus

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel

from config import _today_local
from store import AttendanceStore, ValidationError, validate_name
from tracker import TrackerController
from ui import PAGE_STYLE, _nav_bar
from week import day_label, navigate, parse_iso_date, to_iso_date

router = APIRouter()

RETRY_MESSAGE = "Could not save changes. Please try again."


class TogglePayload(BaseModel):
    medication_id: str
    date: str


class MedicationPayload(BaseModel):
    name: str = ""
    week: str = ""


class DeletePayload(BaseModel):
    confirm: bool = False
    week: str = ""


def _anchor(value: Optional[str]) -> date:
    try:
        return parse_iso_date(value or "")
    except ValueError:
        return _today_local()


def _controller(request: Request, week: Optional[str] = "") -> TrackerController:
    user = getattr(request.state, "user", None)
    store = AttendanceStore(user["id"]) if user else None
    return TrackerController(
        store,
        user["id"] if user else None,
        _anchor(week),
        user_email=user["email"] if user else "",
    )


def _tracker_url(week_start: date, error: str = "") -> str:
    url = f"/tracker?week={to_iso_date(week_start)}"
    if error:
        url += f"&error={quote_plus(error)}"
    return url


def _week_response(ctrl: TrackerController, ok: bool = True, status_code: int = 200, error: str = ""):
    body = {"ok": ok, "week": ctrl.snapshot()}
    if error:
        body["error"] = error
    return JSONResponse(body, status_code=status_code)


def _validation_error(message: str):
    return JSONResponse({"ok": False, "error": message}, status_code=400)


# ── JSON API ─────────────────────────────────────────────────────────────────

@router.get("/api/week")
async def api_week(request: Request, start: str = ""):
    ctrl = _controller(request, start)
    await ctrl.reload()
    return _week_response(ctrl)


@router.post("/api/logs/toggle")
async def api_toggle(request: Request, payload: TogglePayload):
    try:
        day = parse_iso_date(payload.date)
    except ValueError:
        return _validation_error("Invalid date")
    ctrl = _controller(request, payload.date)
    if not await ctrl.reload():
        return _week_response(ctrl, ok=False, status_code=409, error=RETRY_MESSAGE)
    if not await ctrl.toggle(payload.medication_id, day):
        return _week_response(ctrl, ok=False, status_code=409, error=RETRY_MESSAGE)
    return _week_response(ctrl)


@router.post("/api/medications")
async def api_medications_create(request: Request, payload: MedicationPayload):
    try:
        validate_name(payload.name)
    except ValidationError as exc:
        return _validation_error(str(exc))
    ctrl = _controller(request, payload.week)
    if not await ctrl.add_medication(payload.name):
        return _week_response(ctrl, ok=False, status_code=409, error=RETRY_MESSAGE)
    return _week_response(ctrl)


@router.post("/api/medications/{med_id}")
async def api_medications_rename(request: Request, med_id: str, payload: MedicationPayload):
    try:
        validate_name(payload.name)
    except ValidationError as exc:
        return _validation_error(str(exc))
    ctrl = _controller(request, payload.week)
    if not await ctrl.rename_medication(med_id, payload.name):
        return _week_response(ctrl, ok=False, status_code=409, error=RETRY_MESSAGE)
    return _week_response(ctrl)


@router.post("/api/medications/{med_id}/delete")
async def api_medications_delete(request: Request, med_id: str, payload: DeletePayload):
    ctrl = _controller(request, payload.week)
    if not payload.confirm:
        # Declined confirmation: nothing is issued to the store.
        await ctrl.reload()
        return _week_response(ctrl, ok=False)
    if not await ctrl.remove_medication(med_id, confirmed=True):
        return _week_response(ctrl, ok=False, status_code=409, error=RETRY_MESSAGE)
    return _week_response(ctrl)


# ── HTML grid ────────────────────────────────────────────────────────────────

@router.get("/")
def root():
    return RedirectResponse(url="/tracker", status_code=303)


def _grid_html(ctrl: TrackerController) -> str:
    dates = ctrl.week_dates
    week_param = to_iso_date(ctrl.week_start)
    if not ctrl.medications:
        return """
    <div class="empty">
      <div style="font-size:48px;">&#128138;</div>
      <p style="font-size:17px; margin:8px 0 2px;">No medications added yet</p>
      <p style="font-size:13px; margin:0;">Add a medication below to get started</p>
    </div>"""
    head = "".join(f"<th><small>{day_label(d)}</small>{d.day}</th>" for d in dates)
    rows = ""
    for med in ctrl.medications:
        cells = ""
        for d in dates:
            on = ctrl.is_checked(med["id"], d)
            cells += f"""
          <td>
            <form method="post" action="/tracker/toggle" style="margin:0;">
              <input type="hidden" name="medication_id" value="{html.escape(med['id'])}">
              <input type="hidden" name="date" value="{to_iso_date(d)}">
              <button type="submit" class="cell-btn{' on' if on else ''}"
                aria-pressed="{'true' if on else 'false'}"
                title="{html.escape(med['name'])} on {to_iso_date(d)}">{'&#10003;' if on else ''}</button>
            </form>
          </td>"""
        rows += f"""
        <tr>
          <td class="med-name">{html.escape(med['name'])}</td>
          {cells}
          <td>
            <div class="row-actions">
              <a href="/tracker/medications/{quote(med['id'], safe='')}/edit?week={week_param}" class="btn-edit">Edit</a>
              <form method="post" action="/tracker/medications/{quote(med['id'], safe='')}/delete" style="margin:0;">
                <input type="hidden" name="week" value="{week_param}">
                <input type="hidden" name="confirm" value="1">
                <button class="btn-delete" type="submit"
                  onclick="return confirm('Are you sure you want to delete this medication?')">Delete</button>
              </form>
            </div>
          </td>
        </tr>"""
    return f"""
    <div style="overflow-x:auto;">
      <table class="grid">
        <thead>
          <tr>
            <th style="text-align:left;">Medication</th>
            {head}
            <th>Actions</th>
          </tr>
        </thead>
        <tbody>{rows}
        </tbody>
      </table>
    </div>"""


@router.get("/tracker", response_class=HTMLResponse)
async def tracker_page(request: Request, week: str = "", error: str = ""):
    ctrl = _controller(request, week)
    await ctrl.reload()
    snap = ctrl.snapshot()
    error_html = f'<div class="alert">{html.escape(error)}</div>' if error else ""
    prev_week = to_iso_date(navigate(ctrl.week_start, -1))
    next_week = to_iso_date(navigate(ctrl.week_start, 1))
    return f"""<!DOCTYPE html>
<html>
<head>{PAGE_STYLE}<title>Medication Tracker</title></head>
<body>
  {_nav_bar(ctrl.user_email)}
  <div class="container">
    {error_html}
    <div class="card">
      <div class="week-head">
        <a href="/tracker?week={prev_week}" class="btn-week">&larr; Previous Week</a>
        <span class="week-label">{html.escape(snap['label'])}</span>
        <a href="/tracker?week={next_week}" class="btn-week">Next Week &rarr;</a>
      </div>
      {_grid_html(ctrl)}
    </div>
    <div class="card">
      <form method="post" action="/tracker/medications" style="display:flex; gap:10px; align-items:flex-end;">
        <input type="hidden" name="week" value="{snap['week_start']}">
        <div style="flex:1;">
          <label for="name">Add medication</label>
          <input type="text" id="name" name="name" placeholder="Medication name" required autocomplete="off">
        </div>
        <button type="submit" class="btn-primary">Add</button>
      </form>
    </div>
  </div>
</body>
</html>"""


@router.post("/tracker/toggle")
async def tracker_toggle(request: Request, medication_id: str = Form(...), date: str = Form(...)):
    try:
        day = parse_iso_date(date)
    except ValueError:
        return RedirectResponse(url="/tracker?error=Invalid+date", status_code=303)
    ctrl = _controller(request, date)
    applied = await ctrl.reload() and await ctrl.toggle(medication_id, day)
    return RedirectResponse(url=_tracker_url(ctrl.week_start, "" if applied else RETRY_MESSAGE), status_code=303)


@router.post("/tracker/medications")
async def tracker_medications_create(request: Request, name: str = Form(""), week: str = Form("")):
    ctrl = _controller(request, week)
    try:
        validate_name(name)
    except ValidationError as exc:
        return RedirectResponse(url=_tracker_url(ctrl.week_start, str(exc)), status_code=303)
    if not await ctrl.add_medication(name):
        return RedirectResponse(url=_tracker_url(ctrl.week_start, RETRY_MESSAGE), status_code=303)
    return RedirectResponse(url=_tracker_url(ctrl.week_start), status_code=303)


@router.get("/tracker/medications/{med_id}/edit", response_class=HTMLResponse)
async def tracker_medications_edit_get(request: Request, med_id: str, week: str = "", error: str = ""):
    ctrl = _controller(request, week)
    await ctrl.reload()
    med = next((m for m in ctrl.medications if m["id"] == med_id), None)
    if med is None:
        return RedirectResponse(url=_tracker_url(ctrl.week_start), status_code=303)
    week_param = to_iso_date(ctrl.week_start)
    error_html = f'<div class="alert">{html.escape(error)}</div>' if error else ""
    return f"""<!DOCTYPE html>
<html>
<head>{PAGE_STYLE}<title>Edit Medication</title></head>
<body>
  {_nav_bar(ctrl.user_email)}
  <div class="container narrow">
    <h1>Edit Medication</h1>
    {error_html}
    <div class="card">
      <form method="post" action="/tracker/medications/{quote(med_id, safe='')}/edit">
        <input type="hidden" name="week" value="{week_param}">
        <div class="form-group">
          <label for="name">Medication name</label>
          <input type="text" id="name" name="name" value="{html.escape(med['name'])}"
            required autocomplete="off" autofocus>
        </div>
        <div style="display:flex;gap:12px;align-items:center;">
          <button class="btn-primary" type="submit">Save</button>
          <a href="/tracker?week={week_param}" class="back">Cancel</a>
        </div>
      </form>
    </div>
  </div>
</body>
</html>"""


@router.post("/tracker/medications/{med_id}/edit")
async def tracker_medications_edit_post(
    request: Request, med_id: str, name: str = Form(""), week: str = Form("")
):
    ctrl = _controller(request, week)
    edit_url = f"/tracker/medications/{quote(med_id, safe='')}/edit?week={to_iso_date(ctrl.week_start)}"
    try:
        validate_name(name)
    except ValidationError as exc:
        return RedirectResponse(url=f"{edit_url}&error={quote_plus(str(exc))}", status_code=303)
    if not await ctrl.rename_medication(med_id, name):
        # Keep the edit form open so the user can retry.
        return RedirectResponse(url=f"{edit_url}&error={quote_plus(RETRY_MESSAGE)}", status_code=303)
    return RedirectResponse(url=_tracker_url(ctrl.week_start), status_code=303)


@router.post("/tracker/medications/{med_id}/delete")
async def tracker_medications_delete(
    request: Request, med_id: str, confirm: str = Form(""), week: str = Form("")
):
    ctrl = _controller(request, week)
    confirmed = confirm.strip().lower() in {"1", "true", "yes", "on"}
    if confirmed and not await ctrl.remove_medication(med_id, confirmed=True):
        return RedirectResponse(url=_tracker_url(ctrl.week_start, RETRY_MESSAGE), status_code=303)
    return RedirectResponse(url=_tracker_url(ctrl.week_start), status_code=303)
