"""HTTP route handlers wired up by ``function_app.py``."""
