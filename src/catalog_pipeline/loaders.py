"""Page Capture Loader Module

Loads page captures recorded by the browser-automation layer from JSON
files and turns each one into the PageSources the resolver consumes.

A capture looks like:
    {
      "url": "https://www.zara.com/uk/en/man-shirts-l737.html",
      "title": "Shirts | ZARA United Kingdom",
      "embedded_state": {...},            # window.zara at navigation time
      "api_response": {"status": 200, "body": {...}},
      "structured_markup": [{...}, ...],  # ld+json blocks
      "category_id": "1234",              # optional
      "locale": "uk/en"                   # optional
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from .models import ApiResponse, PageSources


def load_page_captures(path: str | Path) -> List[Dict[str, Any]]:
    """Load page captures from a JSON file.

    Supports flexible input formats:
      - Direct list of captures: [{...}, {...}, ...]
      - Wrapped in 'pages' key: {"pages": [...]}
      - Wrapped in 'captures' key: {"captures": [...]}
      - A single capture object

    Args:
        path: File path to JSON file containing page captures

    Returns:
        List of capture dictionaries

    Raises:
        FileNotFoundError: If file does not exist
        json.JSONDecodeError: If file is not valid JSON
        ValueError: If the JSON is not a capture or list of captures
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        if isinstance(data.get("pages"), list):
            data = data["pages"]
        elif isinstance(data.get("captures"), list):
            data = data["captures"]
        else:
            data = [data]

    if not isinstance(data, list):
        raise ValueError(f"Expected a capture object or list of captures in {path}")

    bad = [idx for idx, item in enumerate(data) if not isinstance(item, dict)]
    if bad:
        raise ValueError(f"Captures at positions {bad} in {path} are not objects")
    return data


def to_api_response(raw: Any) -> ApiResponse:
    """Recorded API response: {"status", "body"[, "error"]} or a bare body."""
    if isinstance(raw, dict) and "status" in raw and ("body" in raw or "error" in raw):
        return ApiResponse(
            status=raw.get("status"),
            body=raw.get("body"),
            error=raw.get("error"),
        )
    return ApiResponse(status=200, body=raw)


def capture_to_sources(capture: Dict[str, Any]) -> PageSources:
    """Build PageSources whose API fetcher replays the recorded response."""
    fetch_api = None
    if capture.get("api_response") is not None:
        response = to_api_response(capture["api_response"])

        def fetch_api(category_id: str) -> ApiResponse:
            return response

    return PageSources(
        embedded_state=capture.get("embedded_state"),
        fetch_api=fetch_api,
        structured_markup=capture.get("structured_markup"),
    )
