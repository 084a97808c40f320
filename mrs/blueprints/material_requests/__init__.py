"""
Material requests blueprint package.

This file just exposes the Blueprint object to be imported in mrs.__init__.
The actual routes are in routes.py.
"""

from .routes import material_requests_bp  # noqa: F401
