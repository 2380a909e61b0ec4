"""FastAPI application module for CRMRec.

This module contains the FastAPI application, route handlers and the
logging and metrics plumbing of the recommendation service.
"""
