"""
HTML escaping for admin notifications sent in Telegram HTML mode.

Courier status texts, account usernames and exception messages come from
outside the application and are escaped before they are embedded in a
formatted message. Static message text is never escaped.
"""

import html
from typing import Optional


def safe_html(text: Optional[str]) -> str:
    """
    Escapes HTML special characters in externally provided text.

    Examples:
        >>> safe_html("token expired</b>")
        "token expired&lt;/b&gt;"

        >>> safe_html(None)
        ""
    """
    if text is None:
        return ""
    return html.escape(str(text), quote=True)
