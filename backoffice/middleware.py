"""Middleware for per-request navigation context."""
from flask import current_app, g, request


def detect_page_reload():
    """
    Record in g whether this request comes from a full page reload.

    The browser knows how the page was reached (navigate, reload,
    back_forward); the front-end forwards that value in a header, and a
    draft is only restored when the value is not 'reload'.
    """
    header = current_app.config.get('NAVIGATION_TYPE_HEADER', 'X-Navigation-Type')
    navigation_type = (request.headers.get(header) or '').strip().lower()
    g.navigation_type = navigation_type or None
    g.page_reloaded = navigation_type == 'reload'
