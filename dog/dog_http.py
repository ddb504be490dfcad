import os
import time
from typing import Dict, Optional

import httpx


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


def default_config() -> Dict:
    """HTTP settings from DOG_HTTP_TIMEOUT and DOG_HTTP_RETRIES."""
    return {
        'timeout': _env_float('DOG_HTTP_TIMEOUT', 5.0),
        'retries': _env_int('DOG_HTTP_RETRIES', 2),
        'backoff': 0.2,
    }


def http_request(method: str, url: str, *, config: Optional[Dict] = None) -> str:
    """
    Core HTTP helper.

    Returns the response body as text on 2xx; raises on transport errors and
    non-2xx replies once the retries are exhausted.
    """
    cfg = {**default_config(), **(config or {})}
    timeout = float(cfg.pop('timeout'))
    retries = int(cfg.pop('retries'))
    backoff = float(cfg.pop('backoff'))
    headers = dict(cfg.pop('headers', {}))

    with httpx.Client(timeout=timeout, follow_redirects=True) as client:
        last_exc = None
        for attempt in range(retries + 1):
            try:
                resp = client.request(method.upper(), url, headers=headers)
                if 200 <= resp.status_code < 300:
                    return resp.text
                # Non-2xx -> raise
                preview = (resp.text or "")[:200]
                raise RuntimeError(f"HTTP {resp.status_code} for {url}: {preview}")
            except (httpx.HTTPError, RuntimeError) as e:
                last_exc = e
                if attempt < retries:
                    time.sleep(backoff * (2 ** attempt))
                    continue
                raise last_exc


def http_get(url: str, config: Optional[Dict] = None) -> str:
    return http_request('GET', url, config=config)
