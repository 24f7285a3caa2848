"""Schema Package - JSON Schema Loading.

Loads the JSON schemas used to validate incoming webhook payloads once at
import time and exposes them as module-level constants.

Available Schemas:
    PAGE_BUILD_EVENT_SCHEMA: JSON Schema for GitHub page_build webhook payloads

Usage:
    from schema import PAGE_BUILD_EVENT_SCHEMA
    validate(instance=payload, schema=PAGE_BUILD_EVENT_SCHEMA)
"""
from .schema import PAGE_BUILD_EVENT_SCHEMA, get_page_build_event_schema

__all__ = ["PAGE_BUILD_EVENT_SCHEMA", "get_page_build_event_schema"]
