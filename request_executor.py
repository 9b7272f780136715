import asyncio
import logging
import os
import time

import httpx

from metrics import RequestResult
from config import IMAGE_FIELD_NAME, PNG_CONTENT_TYPE, DEFAULT_CONTENT_TYPE

logger = logging.getLogger(__name__)


def content_type_for(image_path: str) -> str:
    return PNG_CONTENT_TYPE if image_path.lower().endswith(".png") else DEFAULT_CONTENT_TYPE


def _read_image(image_path: str) -> bytes:
    with open(image_path, "rb") as f:
        return f.read()


async def _post_image(client: httpx.AsyncClient, url: str, image_path: str) -> int:
    """Returns the status code as soon as the response headers arrive; the body is never read."""
    image_bytes = await asyncio.to_thread(_read_image, image_path)
    files = {IMAGE_FIELD_NAME: (os.path.basename(image_path), image_bytes, content_type_for(image_path))}
    request = client.build_request("POST", url, files=files)
    response = await client.send(request, stream=True)
    await response.aclose()
    return response.status_code


async def run_request(client: httpx.AsyncClient, url: str, image_path: str, timeout_ms: int) -> RequestResult:
    """Uploads one image and times it.

    Every failure is folded into the returned result: an HTTP response of any
    status keeps its status code, anything that stops the exchange before a
    response (unreadable file, connection error, timeout) is recorded as
    status 0. On timeout the in-flight request task is cancelled, which closes
    its connection.
    """
    started = time.perf_counter()
    ok = False
    status = 0

    try:
        status = await asyncio.wait_for(_post_image(client, url, image_path), timeout=timeout_ms / 1000.0)
        ok = 200 <= status <= 299
        if not ok:
            logger.debug(f"{image_path}: HTTP {status}")
    except asyncio.TimeoutError:
        logger.warning(f"{image_path}: no response within {timeout_ms} ms")
    except (httpx.HTTPError, OSError) as e:
        logger.warning(f"{image_path}: request failed: {type(e).__name__}: {e}")
    except Exception as e:
        logger.error(f"{image_path}: unexpected error: {e}", exc_info=True)

    latency_ms = (time.perf_counter() - started) * 1000
    return RequestResult(ok=ok, status=status, latency_ms=round(latency_ms, 2), image=image_path)
