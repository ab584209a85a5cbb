"""
hrms_api.api.routers

Router modules for the HRMS HTTP surface.
"""
