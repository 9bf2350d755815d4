"""Display helpers for OLM installer output."""

from olm_installer.display.tables import create_status_table, render_table

__all__ = ["create_status_table", "render_table"]
