"""
Media Normalization

Turns image references from chat messages (data URIs or remote URLs) into
inline base64 payloads the upstream accepts.
"""

import base64
import logging

import httpx

from gemini_bridge.common.errors import MediaFetchError, ValidationError
from gemini_bridge.common.utils import parse_data_uri
from gemini_bridge.config import get_settings

logger = logging.getLogger(__name__)


async def fetch_remote_media(url: str) -> tuple[str, str]:
    """
    Download a remote image

    Args:
        url: http(s) URL

    Returns:
        tuple[str, str]: (mime_type, base64 data)

    Raises:
        MediaFetchError: Network failure or non-2xx status
    """
    settings = get_settings()
    logger.debug("Fetching remote media: %s", url)
    try:
        async with httpx.AsyncClient(
            timeout=settings.MEDIA_FETCH_TIMEOUT, follow_redirects=True
        ) as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        raise MediaFetchError(f"Error fetching image: {str(e)} ({url})") from e

    if response.status_code >= 400:
        reason = response.reason_phrase or "Error"
        raise MediaFetchError(f"Error fetching image: {response.status_code} {reason} ({url})")

    content_type = response.headers.get("content-type") or "application/octet-stream"
    mime_type = content_type.split(";")[0].strip()
    return mime_type, base64.b64encode(response.content).decode("ascii")


async def load_image(url: str) -> tuple[str, str]:
    """
    Resolve an `image_url.url` value to (mime_type, base64 data)

    Raises:
        ValidationError: The value is neither an http(s) URL nor a data URI
        MediaFetchError: The remote fetch failed
    """
    if url.startswith("http://") or url.startswith("https://"):
        return await fetch_remote_media(url)
    parsed = parse_data_uri(url)
    if parsed is None:
        raise ValidationError(f"Invalid image data: {url[:64]}")
    return parsed


def load_file_data(file_data: str) -> tuple[str, str]:
    """
    Resolve a `file_data` value; bare base64 is treated as a PDF document
    """
    if not file_data.startswith("data:"):
        file_data = f"data:application/pdf;base64,{file_data}"
    parsed = parse_data_uri(file_data)
    if parsed is None:
        raise ValidationError("Invalid file_data format.")
    return parsed
