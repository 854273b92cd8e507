import logging
from pathlib import Path

from siteflow.core.exceptions import ReportError
from siteflow.services.reports import DIAGRAM_FILE, FLOW_HTML_FILE, write_text

logger = logging.getLogger(__name__)

MERMAID_ESM_URL = "https://cdn.jsdelivr.net/npm/mermaid@10/dist/mermaid.esm.min.mjs"

_HTML_TEMPLATE = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>Process Flow</title>
    <style>
      body {{ font-family: "Spline Sans", Arial, sans-serif; padding: 24px; background: #f4f1ec; }}
      .mermaid {{ background: #fff; padding: 24px; border-radius: 16px; box-shadow: 0 10px 30px -20px rgba(0,0,0,0.2); }}
    </style>
    <script type="module">
      import mermaid from "{mermaid_url}";
      mermaid.initialize({{ startOnLoad: true, theme: "default" }});
    </script>
  </head>
  <body>
    <pre class="mermaid">{diagram}</pre>
  </body>
</html>"""


def escape_html(value: str) -> str:
    return value.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def render_flow_html(diagram_source: str) -> str:
    """Standalone HTML page that renders the Mermaid diagram client-side."""
    return _HTML_TEMPLATE.format(mermaid_url=MERMAID_ESM_URL, diagram=escape_html(diagram_source))


def write_flow_html(report_dir: str | Path) -> Path:
    """Render ``flow.mmd`` in ``report_dir`` to ``flow.html`` next to it."""
    report_dir = Path(report_dir)
    diagram_path = report_dir / DIAGRAM_FILE
    if not diagram_path.exists():
        raise ReportError(f"{DIAGRAM_FILE} not found in {report_dir}")

    html_path = report_dir / FLOW_HTML_FILE
    write_text(html_path, render_flow_html(diagram_path.read_text(encoding="utf-8")))
    logger.info(f"Rendered {html_path}")
    return html_path
