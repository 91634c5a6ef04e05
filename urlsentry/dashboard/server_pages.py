"""Server-rendered index page."""

from __future__ import annotations

from aiohttp import web

from ..constants import ScanStatus
from ..utils.domains import format_url_for_display
from .server_helpers import _escape

_STATUS_CLASS = {
    ScanStatus.CLEAN: "sb-clean",
    ScanStatus.SUSPICIOUS: "sb-review",
    ScanStatus.DANGEROUS: "sb-danger",
    ScanStatus.ERROR: "sb-error",
}

_STYLE = """
body { font-family: system-ui, sans-serif; margin: 2rem auto; max-width: 960px; color: #1f2933; }
h1 { margin-bottom: 0.25rem; }
.sb-muted { color: #61707d; }
form { margin: 1rem 0; display: flex; gap: 0.5rem; }
input[type=text] { flex: 1; padding: 0.4rem; }
table { width: 100%; border-collapse: collapse; margin-top: 1rem; }
th, td { text-align: left; padding: 0.35rem 0.5rem; border-bottom: 1px solid #e4e7eb; }
.sb-clean { color: #1b7f3b; }
.sb-review { color: #b7791f; }
.sb-danger { color: #c53030; }
.sb-error { color: #61707d; }
#sb-progress { font-variant-numeric: tabular-nums; }
"""

_SCRIPT = """
async function sbPoll(jobId) {
  const out = document.getElementById('sb-progress');
  for (;;) {
    const resp = await fetch('/api/scans/' + jobId);
    const job = await resp.json();
    out.textContent = job.state + ' ' + job.percent + '% (' + job.completed + '/' + job.total + ')';
    if (job.state === 'complete' || job.state === 'failed') {
      if (job.error) { out.textContent += ' ' + job.error.message; }
      else { window.location.reload(); }
      return;
    }
    await new Promise(r => setTimeout(r, 1000));
  }
}
document.getElementById('sb-scan').addEventListener('submit', async (ev) => {
  ev.preventDefault();
  const url = ev.target.elements.url.value;
  const resp = await fetch('/api/scan', {method: 'POST', headers: {'Content-Type': 'application/json'}, body: JSON.stringify({url})});
  const body = await resp.json();
  if (!resp.ok) { document.getElementById('sb-progress').textContent = body.error; return; }
  sbPoll(body.job_id);
});
"""


class DashboardServerPagesMixin:
    """Minimal HTML front page."""

    def _render_history_rows(self) -> str:
        if self.history is None:
            return '<tr><td colspan="5" class="sb-muted">History is disabled.</td></tr>'
        rows: list[str] = []
        for item in self.history.items():
            for result in item.results:
                css = _STATUS_CLASS.get(result.status, "sb-error")
                rows.append(
                    "<tr>"
                    f"<td>{_escape(item.timestamp)}</td>"
                    f"<td>{_escape(item.type)}</td>"
                    f'<td title="{_escape(result.url)}">{_escape(format_url_for_display(result.url))}</td>'
                    f"<td>{result.spam_score:.1f}</td>"
                    f'<td class="{css}">{_escape(result.status.value)}</td>'
                    "</tr>"
                )
        if not rows:
            return '<tr><td colspan="5" class="sb-muted">No scans yet.</td></tr>'
        return "\n".join(rows)

    async def _index(self, request: web.Request) -> web.Response:
        body = f"""<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>URL Sentry</title>
<style>{_STYLE}</style>
</head>
<body>
<h1>URL Sentry</h1>
<p class="sb-muted">Submit a URL for spam scoring, or POST a CSV to <code>/api/bulk</code>.</p>
<form id="sb-scan">
  <input type="text" name="url" placeholder="example.com" autocomplete="off">
  <button type="submit">Scan</button>
</form>
<div id="sb-progress" class="sb-muted"></div>
<h2>Recent scans</h2>
<p><a href="/api/history/export">Export history as CSV</a></p>
<table>
<thead><tr><th>When</th><th>Type</th><th>URL</th><th>Score</th><th>Status</th></tr></thead>
<tbody>
{self._render_history_rows()}
</tbody>
</table>
<script>{_SCRIPT}</script>
</body>
</html>"""
        return web.Response(text=body, content_type="text/html")
