"""Imagery Request Lifecycle Service.

Azure Functions service through which end users submit satellite
imagery requests for a drawn Area of Interest, and administrators
triage, quote and resolve them.
"""

__version__ = "0.1.0"
