"""
Centralized JSON Schema Loading Module.

This module loads JSON schema files from disk once, at import time, and
exposes them as module-level constants. A missing or malformed schema file
makes the import fail immediately, so problems surface at start-up rather
than on the first webhook delivery.

File Location:
    Schemas live in the same directory as this module (src/schema/). The
    path is resolved from __file__, so it works from any working directory.
"""
import json
from pathlib import Path
from typing import Dict, Any

SCHEMA_DIR = Path(__file__).parent


def _load_schema(schema_filename: str) -> Dict[str, Any]:
    """
    Load a JSON schema file from the schema directory.

    Args:
        schema_filename: Name of the JSON schema file (e.g., "page_build_event_schema.json")

    Returns:
        Parsed JSON schema as a dictionary, ready for use with jsonschema library

    Raises:
        FileNotFoundError: If the schema file doesn't exist at the expected location
        json.JSONDecodeError: If the schema file exists but contains invalid JSON
    """
    schema_path = SCHEMA_DIR / schema_filename

    if not schema_path.exists():
        raise FileNotFoundError(
            f"Schema file not found: {schema_path}. "
            f"Expected location: {SCHEMA_DIR}"
        )

    try:
        with open(schema_path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        # Re-raise with the name of the file that failed
        raise json.JSONDecodeError(
            f"Invalid JSON in schema file {schema_filename}: {e.msg}",
            e.doc,
            e.pos
        ) from e


# GitHub page_build webhook payload (JSON Schema Draft 7)
PAGE_BUILD_EVENT_SCHEMA = _load_schema("page_build_event_schema.json")


def get_page_build_event_schema() -> Dict[str, Any]:
    """Get the GitHub page_build event JSON schema.

    Returns the same object as the PAGE_BUILD_EVENT_SCHEMA constant.
    """
    return PAGE_BUILD_EVENT_SCHEMA
