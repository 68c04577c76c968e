"""Inkgen - FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request/response
models, and the error responder.

Modules
-------
main
    FastAPI application factory, route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response validation.
errors
    Exception handlers that render every failure as the uniform error
    envelope.
"""
