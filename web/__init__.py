"""
Web application package for the relocation planner.

Provides a FastAPI REST API for running the planner and the static
evaluation over HTTP.
"""
