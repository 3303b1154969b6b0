# scraping/core.py
import logging
import ssl

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

from config import config  # Import the singleton instance
from sessions.errors import LoggedOutError, RemoteError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/110.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "ru-RU,ru;q=0.9,en-US;q=0.8",
    "Connection": "keep-alive",
}


def create_session() -> requests.Session:
    """Creates a requests session with retry logic and the portal's expected headers."""
    session = requests.Session()

    # Only idempotent requests are retried: a retried POST could delete mail twice.
    retry_strategy = Retry(
        total=config.DEFAULT_MAX_RETRIES,
        backoff_factor=1,  # 1s, 2s, 4s...
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["HEAD", "GET", "OPTIONS"],
    )

    if config.VERIFY_SSL is False:
        adapter = UnsafeTLSAdapter(
            max_retries=retry_strategy, pool_connections=10, pool_maxsize=20
        )
    else:
        adapter = HTTPAdapter(
            max_retries=retry_strategy, pool_connections=10, pool_maxsize=20
        )
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    session.headers.update(DEFAULT_HEADERS)

    # (connect, read)
    session.timeout = (
        config.DEFAULT_REQUEST_TIMEOUT,
        config.DEFAULT_REQUEST_TIMEOUT * 2,
    )

    session.verify = config.VERIFY_SSL
    if config.VERIFY_SSL is False:
        import urllib3

        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        logger.warning("SSL verification is disabled. Requests may be insecure.")

    return session


def make_request(
    session: requests.Session,
    url: str,
    method: str = "GET",
    logged_out_check=None,
    detect_login_redirect: bool = True,
    **kwargs,
) -> requests.Response:
    """
    Makes a request using the provided session.
    Relies on the retry logic configured within the session adapter.

    Args:
        session: The requests.Session object to use.
        url: The URL to request.
        method: HTTP method (GET, POST, etc.).
        logged_out_check: Optional callable(response) -> bool recognising the
            portal's "session is no longer valid" page.
        detect_login_redirect: Treat a redirect through the login page as a
            dropped session. Off for the login handshake itself.
        **kwargs: Passed to session.request (data, json, headers, timeout...).

    Returns:
        The response.

    Raises:
        LoggedOutError: the portal no longer honours the session.
        RemoteError: timeout, connection failure, HTTP error.
    """
    req_timeout = kwargs.pop("timeout", getattr(session, "timeout", None))

    try:
        if "verify" not in kwargs:
            kwargs["verify"] = config.VERIFY_SSL
        response = session.request(method, url, timeout=req_timeout, **kwargs)
    except requests.exceptions.RetryError as e:
        logger.error(f"Request failed after max retries for {method} {url}: {e}")
        raise RemoteError(log_message=f"Max retries exceeded for {url}") from e
    except requests.exceptions.Timeout as e:
        logger.error(f"Request timed out for {method} {url}: {e}")
        raise RemoteError(
            log_outcome="remote_timeout", log_message=f"Timeout for {url}"
        ) from e
    except requests.exceptions.ConnectionError as e:
        logger.error(f"Connection error for {method} {url}: {e}")
        raise RemoteError(log_message=f"Connection error for {url}: {e}") from e
    except requests.exceptions.RequestException as e:
        logger.error(f"Request exception for {method} {url}: {e}", exc_info=True)
        raise RemoteError(log_message=f"Request exception for {url}: {e}") from e

    if response.status_code in (401, 403):
        logger.warning(
            f"Portal refused session: {response.status_code} for {method} {url}"
        )
        raise LoggedOutError(log_message=f"{response.status_code} for {url}")

    # Redirect to the login page means the portal dropped our session
    redirects = response.history if detect_login_redirect else []
    for resp_hist in redirects:
        if _is_login_url(resp_hist.headers.get("Location", "")):
            logger.warning(f"Request redirected to login page for {method} {url}")
            raise LoggedOutError(log_message=f"Redirected to login from {url}")
    if redirects and _is_login_url(response.url):
        logger.warning(f"Request landed on login page for {method} {url}")
        raise LoggedOutError(log_message=f"Landed on login page from {url}")

    if logged_out_check is not None and logged_out_check(response):
        logger.warning(f"Portal reported an expired session for {method} {url}")
        raise LoggedOutError(log_message=f"Expired-session page for {url}")

    try:
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        logger.error(
            f"HTTP error for {method} {url}: {response.status_code} {response.reason}"
        )
        raise RemoteError(
            log_message=f"HTTP {response.status_code} for {url}"
        ) from e

    logger.debug(f"Request successful: {method} {url} (Status: {response.status_code})")
    return response


def _is_login_url(url: str) -> bool:
    lowered = (url or "").lower()
    return "login.asp" in lowered or "/about.asp" in lowered or "logout" in lowered


# Force-disable TLS verification at the urllib3 layer when VERIFY_SSL is False.
class UnsafeTLSAdapter(HTTPAdapter):
    def __init__(self, *args, **kwargs):
        self._ssl_context = ssl.create_default_context()
        self._ssl_context.check_hostname = False
        self._ssl_context.verify_mode = ssl.CERT_NONE
        super().__init__(*args, **kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        pool_kwargs["ssl_context"] = self._ssl_context
        pool_kwargs["assert_hostname"] = False
        return super().init_poolmanager(connections, maxsize, block, **pool_kwargs)

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        proxy_kwargs["ssl_context"] = self._ssl_context
        proxy_kwargs["assert_hostname"] = False
        return super().proxy_manager_for(proxy, **proxy_kwargs)
