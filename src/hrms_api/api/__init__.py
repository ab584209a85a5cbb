"""
hrms_api.api

API package for the HRMS service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring, error handlers and request/response models.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer should remain thin: request validation + auth + delegation to services.
