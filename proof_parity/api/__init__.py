"""API routes for the Proof Parity Checker."""

from .routes import router
from .export import export_records_csv, export_summary_csv, records_to_frame

__all__ = ['router', 'export_records_csv', 'export_summary_csv', 'records_to_frame']
