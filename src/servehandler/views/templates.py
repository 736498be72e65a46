"""
Built-in HTML for directory listings and error pages.

Every value interpolated into the markup is escaped; file names come from
disk and cannot be trusted. Link targets are percent-encoded first, so a
name holding "#", "?" or "%" still links to itself.
"""

from html import escape
from typing import Any, Dict
from urllib.parse import quote


_STYLE = """
        body { font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif; margin: 0; padding: 30px; color: #1a1a1a; }
        main { max-width: 920px; margin: 0 auto; }
        h1 { font-size: 18px; font-weight: 500; border-bottom: 1px solid #eaeaea; padding-bottom: 12px; }
        h1 a { color: #0076ff; text-decoration: none; }
        ul { list-style: none; padding: 0; margin: 0; }
        li { display: flex; justify-content: space-between; padding: 6px 0; border-bottom: 1px solid #f3f3f3; }
        a { color: #0076ff; text-decoration: none; }
        a:hover { text-decoration: underline; }
        .size { color: #888; font-variant-numeric: tabular-nums; }
        .error { text-align: center; margin-top: 20vh; }
        .error h1 { border: 0; font-size: 48px; margin: 0; }
        .error p { color: #666; }
"""


def _href(path: str) -> str:
    return escape(quote(path, safe="/"))


def directory_template(listing: Dict[str, Any]) -> str:
    """
    Render a directory listing.

    Args:
        listing: {"files": [...], "directory": str, "paths": [...]} as
                 produced by the directory lister.
    """
    crumbs = "".join(
        f'<a href="{_href(part["url"])}">{escape(part["name"])}</a>'
        for part in listing["paths"]
    )

    rows = []
    for entry in listing["files"]:
        size = f'<span class="size">{escape(entry["size"])}</span>' if "size" in entry else ""
        rows.append(
            f'<li class="{escape(entry["type"])}">'
            f'<a href="{_href(entry["relative"])}" title="{escape(entry["title"])}">'
            f'{escape(entry["base"])}</a>{size}</li>'
        )

    items = "".join(rows)
    directory = escape(listing["directory"])
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>Files within {directory}</title>
    <style>{_STYLE}    </style>
</head>
<body>
    <main>
        <h1>Index of {crumbs}</h1>
        <ul id="files">
            {items}
        </ul>
    </main>
</body>
</html>
"""


def error_template(status_code: int, message: str) -> str:
    """Render the fallback page for an error response."""
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{int(status_code)}</title>
    <style>{_STYLE}    </style>
</head>
<body>
    <main class="error">
        <h1>{int(status_code)}</h1>
        <p>{escape(message)}</p>
    </main>
</body>
</html>
"""
