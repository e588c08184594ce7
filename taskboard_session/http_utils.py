"""
HTTP helpers shared by the hosted adapters.
"""

import json
from typing import Any

import aiohttp


async def read_payload(response: aiohttp.ClientResponse) -> dict[str, Any]:
    """Decode a JSON response body, tolerating empty and non-JSON bodies."""
    text = await response.text()
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return {"message": text}
    return data if isinstance(data, dict) else {"data": data}


def retry_after_seconds(response: aiohttp.ClientResponse) -> float | None:
    """Parse a Retry-After header given in seconds."""
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
