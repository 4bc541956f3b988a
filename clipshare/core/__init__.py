"""
Core business logic for video access.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
boto3, or any infrastructure concerns. Collaborators are described by
Protocols and injected by the API layer.
"""
