from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Template

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>nucreads report: {{ title }}</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .small { color: #666; font-size: 0.9em; }
  </style>
</head>
<body>

<h1>nucreads report: {{ title }}</h1>
<p class="small">Generated: {{ generated_at }}</p>

{% if params %}
<h2>Parameters</h2>
<table>
  {% for key, value in params.items() %}
  <tr><th>{{ key }}</th><td><code>{{ value }}</code></td></tr>
  {% endfor %}
</table>
{% endif %}

{% for sample in samples %}
<h2>{{ sample.name }}</h2>
<table>
  <tr><th>Reads</th><td>{{ sample.n_reads }}</td></tr>
  {% for key, value in sample.counts.items() %}
  <tr><th>{{ key }}</th><td>{{ value }}</td></tr>
  {% endfor %}
</table>
{% if sample.per_chrom %}
<h3>Reads per reference</h3>
<table>
  <tr><th>Reference</th><th>Reads</th></tr>
  {% for chrom, n in sample.per_chrom.items() %}
  <tr><td><code>{{ chrom }}</code></td><td>{{ n }}</td></tr>
  {% endfor %}
</table>
{% endif %}
{% if sample.empty %}
<p><strong>No reads were produced for this sample.</strong></p>
{% endif %}
{% endfor %}

<h2>Outputs</h2>
<ul>
  {% for out in outputs %}
  <li><code>{{ out }}</code></li>
  {% endfor %}
  <li><code>summary.json</code> (machine-readable summary)</li>
</ul>

<hr>
<p class="small">nucreads {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    title: str,
    samples: List[Dict[str, Any]],
    outputs: List[str],
    params: Optional[Dict[str, Any]] = None,
) -> Path:
    """Write ``report.html`` into ``outdir``.

    Each sample is a dict with ``name``, ``n_reads`` and optionally ``counts``
    and ``per_chrom`` mappings.
    """
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    rows = []
    for s in samples:
        rows.append(
            {
                "name": s.get("name", "sample"),
                "n_reads": int(s.get("n_reads", 0)),
                "counts": dict(s.get("counts", {})),
                "per_chrom": dict(s.get("per_chrom", {})),
                "empty": int(s.get("n_reads", 0)) == 0,
            }
        )

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        title=title,
        params=params or {},
        samples=rows,
        outputs=outputs,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    logger.debug("Report written to %s", out_path)
    return out_path
