import os
import logging
from typing import Optional

import requests
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()


def resolve_service_url(env_var: str, explicit: Optional[str] = None) -> str:
    """Return ``explicit`` or the URL stored in ``env_var``, without trailing slash.

    Raises
    ------
    ValueError
        If neither is set.
    """
    url = explicit or os.environ.get(env_var)
    if not url:
        raise ValueError(f"Environment variable '{env_var}' is not set")
    return url.rstrip("/")


def open_session(api_key: Optional[str] = None) -> requests.Session:
    """Open a requests session for the oracle services.

    Parameters
    ----------
    api_key : Optional[str]
        Bearer token sent with every request. Falls back to ``ORACLE_API_KEY``.

    Returns
    -------
    requests.Session
        Session with JSON and authorization headers applied.
    """
    session = requests.Session()
    session.headers.update({"Accept": "application/json"})
    key = api_key or os.environ.get("ORACLE_API_KEY")
    if key:
        session.headers["Authorization"] = f"Bearer {key}"
        # Never log the key itself
        logger.debug("Oracle API key configured (value redacted)")
    else:
        logger.debug("No oracle API key configured; sending unauthenticated requests")
    return session
