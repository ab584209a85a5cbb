"""
hrms_api.services

Service-layer package.

Responsibilities:
- Own transaction boundaries and persistence decisions.
- Call the audit sink after each committed mutation.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services raise `hrms_api.errors.AppError` subclasses and never import FastAPI.
