import html


def _nav_bar(email: str = "") -> str:
    email_html = (
        f'<span style="color:rgba(255,255,255,0.8); font-size:13px;">{html.escape(email)}</span>'
        if email else ""
    )
    return (
        '<nav style="background:linear-gradient(90deg,#3b82f6,#22c55e);">'
        '<div style="padding:0 24px; height:56px; display:flex; align-items:center; gap:16px;">'
        '<a href="/tracker" style="font-weight:800; color:#fff; font-size:16px; text-decoration:none;'
        ' flex-shrink:0;">&#128138; Medication Tracker</a>'
        '<div style="margin-left:auto; display:flex; align-items:center; gap:14px;">'
        + email_html
        + '<form method="post" action="/logout" style="margin:0;">'
        '<button type="submit" style="background:rgba(255,255,255,0.2); border:none;'
        ' color:#fff; border-radius:8px; padding:6px 14px;'
        ' font-size:13px; cursor:pointer; font-family:inherit;">Sign Out</button>'
        '</form>'
        '</div>'
        '</div>'
        '</nav>'
    )


PAGE_STYLE = """
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <script>
    (function () {
      // The server derives the client's "today" from this cookie.
      document.cookie = "tz_offset=" + String(new Date().getTimezoneOffset())
        + "; path=/; max-age=31536000; SameSite=Lax";
    })();
  </script>
  <style>
    body { font-family: system-ui, sans-serif; background: #f0f7f4; margin: 0; padding: 0; color: #222; }
    .container { max-width: 960px; margin: 0 auto; padding: 24px; }
    .container.narrow { max-width: 480px; }
    h1 { margin-bottom: 4px; }
    .card { background: #fff; border: 1px solid #e0e0e0; border-radius: 12px; padding: 16px; margin: 12px 0; }
    .btn-delete { background: none; border: 1px solid #e0e0e0;
                  border-radius: 6px; padding: 4px 10px; font-size: 13px; color: #888;
                  cursor: pointer; }
    .btn-delete:hover { background: #fee2e2; border-color: #ef4444; color: #ef4444; }
    .btn-edit { font-size: 13px; color: #3b82f6; border: 1px solid #d1d5db;
                border-radius: 6px; padding: 4px 10px; text-decoration: none; display: inline-block; }
    .btn-edit:hover { background: #eff6ff; border-color: #3b82f6; }
    .btn-primary { background: #3b82f6; color: #fff; border: none; border-radius: 8px;
                   padding: 10px 22px; font-size: 15px; cursor: pointer; font-weight: 600; }
    .btn-primary:hover { background: #2563eb; }
    .btn-week { background: #f3f4f6; color: #374151; text-decoration: none; border-radius: 8px;
                padding: 8px 16px; font-size: 14px; font-weight: 600; }
    .btn-week:hover { background: #e5e7eb; }
    .back { font-size: 14px; color: #3b82f6; text-decoration: none; }
    .back:hover { text-decoration: underline; }
    .form-group { margin-bottom: 20px; }
    label { display: block; font-weight: 600; font-size: 14px; margin-bottom: 6px; }
    input[type=text], input[type=password], input[type=email] { width: 100%; box-sizing: border-box; border: 1px solid #d1d5db;
      border-radius: 6px; padding: 8px 10px; font-size: 15px; font-family: inherit; }
    input[type=text]:focus, input[type=password]:focus, input[type=email]:focus { outline: 2px solid #3b82f6; border-color: transparent; }
    .alert { background: #fee2e2; border: 1px solid #fca5a5; color: #b91c1c;
             border-radius: 6px; padding: 10px 14px; margin-bottom: 16px; font-size: 14px; }
    .empty { color: #888; font-style: italic; margin-top: 16px; text-align: center; }
    /* ── Week grid ─────────────────────────────────────────────────────── */
    .week-head { display: flex; align-items: center; justify-content: space-between; margin-bottom: 16px; }
    .week-label { font-size: 17px; font-weight: 700; color: #1f2937; }
    table.grid { width: 100%; border-collapse: collapse; }
    table.grid th { font-size: 13px; color: #374151; padding: 10px 6px; border-bottom: 2px solid #e5e7eb; }
    table.grid th small { display: block; font-size: 11px; color: #9ca3af; font-weight: 500; }
    table.grid td { padding: 10px 6px; border-bottom: 1px solid #f3f4f6; text-align: center; }
    table.grid td.med-name { text-align: left; font-weight: 600; color: #1f2937; }
    .cell-btn { width: 26px; height: 26px; border-radius: 6px; border: 2px solid #cbd5e1;
                background: #fff; cursor: pointer; font-size: 14px; line-height: 1; padding: 0; }
    .cell-btn.on { background: #3b82f6; border-color: #3b82f6; color: #fff; }
    .row-actions { display: flex; gap: 6px; justify-content: center; align-items: center; }
    @media (max-width: 640px) {
      .container { padding: 12px; }
      table.grid th, table.grid td { padding: 6px 2px; }
    }
  </style>
"""
