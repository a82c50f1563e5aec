"""
Download helpers (pure).

Size formatting and artifact URL rendering.
No I/O, no subprocess.
"""

from __future__ import annotations

import string


def fmt_size(n: int | float) -> str:
    """Format byte count to human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


def render_url(template: str, **values: str) -> str:
    """Fill ``{placeholder}`` fields of an artifact URL template.

    Raises:
        ValueError: If the template names a placeholder with no value.

    >>> render_url("https://x/{os}-{machine}", os="Linux", machine="x86_64")
    'https://x/Linux-x86_64'
    """
    fields = {name for _, name, _, _ in string.Formatter().parse(template) if name}
    unknown = fields - values.keys()
    if unknown:
        raise ValueError(
            f"URL template {template!r} uses unknown placeholder(s): "
            f"{', '.join(sorted(unknown))}"
        )
    return template.format(**values)
