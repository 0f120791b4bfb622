"""
Download helpers for Earth Engine pixel blocks.
"""
import io
import time
import logging
from typing import Optional

import numpy as np
import requests

from .config import DOWNLOAD_RETRIES, DOWNLOAD_RETRY_DELAY, DOWNLOAD_TIMEOUT
from .exceptions import DownloadError


def fetch_array(url: str, label: Optional[str] = None,
                retries: int = DOWNLOAD_RETRIES, retry_delay: float = DOWNLOAD_RETRY_DELAY,
                timeout: float = DOWNLOAD_TIMEOUT) -> np.ndarray:
    """
    Download an NPY block from an Earth Engine getDownloadURL link with retry logic.

    Transient failures (HTTP errors, timeouts, connection errors, truncated
    payloads) are retried with exponential backoff.

    Returns:
        Structured numpy array with one field per band

    Raises:
        DownloadError: all attempts failed
    """
    what = label or "block"
    last_error = "no attempts made"
    for attempt in range(retries):
        try:
            logging.debug("Downloading %s (attempt %d/%d)", what, attempt + 1, retries)
            r = requests.get(url, timeout=timeout)
            if r.status_code != 200:
                last_error = f"HTTP {r.status_code}: {r.text[:200]}"
            else:
                return np.load(io.BytesIO(r.content), allow_pickle=False)
        except requests.exceptions.Timeout:
            last_error = "download timeout"
        except requests.exceptions.RequestException as e:
            last_error = f"download error: {e}"
        except (ValueError, EOFError) as e:
            # np.load on a truncated or non-NPY payload
            last_error = f"invalid NPY payload: {e}"

        if attempt < retries - 1:
            wait_time = retry_delay * (2 ** attempt)
            logging.warning("%s for %s, retrying in %s seconds...", last_error, what, wait_time)
            time.sleep(wait_time)

    raise DownloadError(f"Failed to download {what} after {retries} attempts: {last_error}")
