# ==============================================================================
# CLI Command Modules
# ==============================================================================
"""
Command implementations registered on the typer app in sessionlog/app.py.
"""
