"""Synthesized visuals used in place of real screenshots.

When the active engine cannot render pixels (or a capture fails) the harness
still attaches something that looks like evidence: a small SVG card with the
page URL, title, status and time. For the final-state capture the SVG is
wrapped into an HTML ``<img>`` with a base64 data URL so report tooling shows
it the same way it shows real screenshots.
"""

import base64
import html
from typing import Sequence

CANVAS_WIDTH = 800
CANVAS_HEIGHT = 400
HEADER_Y = 40
FIRST_LINE_Y = 80
LINE_SPACING = 30

CARD_STYLE = "background:#f8f9fa; padding:10px; border-radius:3px; margin-top:5px;"


def render_svg(header: str, lines: Sequence[str]) -> str:
    """Draws a header line plus body lines on a fixed canvas."""
    parts = [
        f"<svg xmlns='http://www.w3.org/2000/svg' width='{CANVAS_WIDTH}' height='{CANVAS_HEIGHT}'>",
        f"<rect width='{CANVAS_WIDTH}' height='{CANVAS_HEIGHT}' fill='#f8f9fa' stroke='#ddd' stroke-width='2'/>",
        f"<text x='{CANVAS_WIDTH // 2}' y='{HEADER_Y}' font-family='Arial' font-size='24' "
        f"text-anchor='middle' fill='#2c3e50'>{html.escape(header)}</text>",
    ]
    y = FIRST_LINE_Y
    for line in lines:
        parts.append(
            f"<text x='50' y='{y}' font-family='monospace' font-size='16' fill='#333'>{html.escape(line)}</text>"
        )
        y += LINE_SPACING
    parts.append(
        f"<rect width='{CANVAS_WIDTH - 4}' height='{CANVAS_HEIGHT - 4}' x='2' y='2' "
        f"fill='none' stroke='#3498db' stroke-width='2'/>"
    )
    parts.append("</svg>")
    return "".join(parts)


def svg_data_url(svg: str) -> str:
    return "data:image/svg+xml;base64," + base64.b64encode(svg.encode("utf-8")).decode("ascii")


def embed_svg_html(svg: str, width: int = 700, height: int = 350) -> str:
    """Wraps an SVG into an HTML fragment that renders it as an inline image."""
    return (
        f"<div style='text-align:center;'>"
        f"<img src='{svg_data_url(svg)}' width='{width}' height='{height}'/></div>"
    )


def details_html(url: str, title: str, timestamp: str) -> str:
    """Caption that travels next to every image attachment."""
    return (
        f"<div style='{CARD_STYLE}'>"
        f"<p><strong>URL:</strong> {html.escape(url)}</p>"
        f"<p><strong>Title:</strong> {html.escape(title)}</p>"
        f"<p><small>Time: {html.escape(timestamp)}</small></p>"
        f"</div>"
    )


def scenario_start_html(scenario: str, url: str, title: str, timestamp: str) -> str:
    return (
        "<div style='background:#f8f9fa; padding:15px; border-radius:5px; border:1px solid #ddd;'>"
        "<h3 style='color:#2c3e50;'>Test Started</h3>"
        f"<p><strong>Scenario:</strong> {html.escape(scenario)}</p>"
        f"<p><strong>URL:</strong> {html.escape(url)}</p>"
        f"<p><strong>Title:</strong> {html.escape(title)}</p>"
        f"<p><strong>Time:</strong> {html.escape(timestamp)}</p>"
        "</div>"
    )


def final_summary_html(url: str, title: str, status: str, failed: bool, timestamp: str) -> str:
    color = "red" if failed else "green"
    return (
        "<div style='background:#e8f4f8; padding:15px; border-radius:5px; border:1px solid #bcd; margin:20px 0;'>"
        "<h3 style='color:#245; border-bottom:1px solid #bcd; padding-bottom:8px;'>"
        f"Test Completed: {html.escape(status)}</h3>"
        f"<p><strong>URL:</strong> {html.escape(url)}</p>"
        f"<p><strong>Page Title:</strong> {html.escape(title)}</p>"
        f"<p><strong>Time:</strong> {html.escape(timestamp)}</p>"
        f"<p><strong>Final Status:</strong> <span style='color:{color};font-weight:bold;'>"
        f"{html.escape(status)}</span></p>"
        "</div>"
    )
