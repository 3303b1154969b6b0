# utils/log.py
import logging
import json
import concurrent.futures
import atexit
from time import perf_counter
from datetime import datetime, timezone

import redis
from flask import current_app, g, request  # For accessing g and request context

from config import config

logger = logging.getLogger(__name__)  # Use module-specific logger

# --- Logging Constants ---
API_LOG_KEY = config.API_LOG_KEY
MAX_LOG_ENTRIES = config.MAX_LOG_ENTRIES
SENSITIVE_FIELDS = ("password", "passkey")
MASK = "********"

# --- Thread Pool for Background Logging ---
log_executor = concurrent.futures.ThreadPoolExecutor(
    max_workers=5, thread_name_prefix="LogThread"
)


def _log_to_redis_task(redis_client, log_entry_dict):
    """Internal task to write logs to Redis asynchronously."""
    if not redis_client:
        # Fallback to standard logger if Redis is down
        logger.warning(f"Redis unavailable for logging. Stdout log: {log_entry_dict}")
        return
    try:
        # Ensure all values are JSON serializable, default to string representation
        log_entry_json = json.dumps(log_entry_dict, default=str, ensure_ascii=False)
        log_entry_bytes = log_entry_json.encode("utf-8")
        log_key_bytes = API_LOG_KEY.encode("utf-8")

        # Use pipeline for atomic LPUSH and LTRIM
        pipe = redis_client.pipeline()
        pipe.lpush(log_key_bytes, log_entry_bytes)
        pipe.ltrim(log_key_bytes, 0, MAX_LOG_ENTRIES - 1)
        pipe.execute()
    except redis.exceptions.TimeoutError:
        logger.error("Redis timeout during async logging.")
    except redis.exceptions.ConnectionError as e:
        logger.error(f"Redis connection error during async logging: {e}")
    except TypeError as e:
        # Log the original dict for easier debugging if serialization fails
        logger.error(
            f"Log serialization error: {e}. Log entry: {log_entry_dict}", exc_info=True
        )
    except redis.exceptions.RedisError as e:
        logger.error(f"Unexpected async log error: {e}", exc_info=True)


def mask_sensitive(data):
    """Returns a copy of a request dict with credentials replaced by a mask."""
    if not isinstance(data, dict):
        return data
    masked = dict(data)
    for field in SENSITIVE_FIELDS:
        if field in masked:
            masked[field] = MASK
    return masked


def build_log_entry(response) -> dict:
    """Collects the per-request log entry from Flask's g and request/response objects."""
    elapsed_ms = (perf_counter() - getattr(g, "start_time", perf_counter())) * 1000
    request_time = getattr(g, "request_time", datetime.now(timezone.utc))

    raw_ua_header = request.headers.get("User-Agent")
    final_user_agent = (raw_ua_header or "Unknown")[:250]

    request_args = mask_sensitive(request.args.to_dict())

    request_data = {}
    if request.is_json:
        request_data = request.get_json(silent=True) if request.content_length else {}
        if request_data is None:
            request_data = {"error": "Could not parse JSON body"}
    elif request.form:
        request_data = request.form.to_dict()
    request_data = mask_sensitive(request_data)

    ip_address = request.headers.get("X-Forwarded-For", request.remote_addr) or "Unknown"

    return {
        "endpoint": request.path,
        "method": request.method,
        "status_code": response.status_code,
        "username": getattr(g, "username", None),
        "outcome": getattr(g, "log_outcome", "unknown"),
        "error_message": getattr(g, "log_error_message", None),
        "time_elapsed_ms": round(elapsed_ms, 2),
        "request_timestamp_utc": request_time.isoformat(),
        "response_timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "ip_address": ip_address,
        "user_agent": final_user_agent,
        "request_args": request_args or None,  # Use None if empty
        "request_data": request_data or None,  # Use None if empty
        "response_size_bytes": response.content_length,
    }


def log_api_request(response):
    """
    Gathers log info and submits the logging task asynchronously.
    Designed to be called from Flask's @app.after_request.
    """
    # Avoid logging OPTIONS requests or specific utility paths
    if request.method == "OPTIONS" or request.path in ["/favicon.ico", "/"]:
        return response

    log_entry = build_log_entry(response)
    redis_client = current_app.extensions.get("redis_client")

    # Submit logging task
    try:
        log_executor.submit(_log_to_redis_task, redis_client, log_entry)
    except RuntimeError as e:
        logger.exception(f"CRITICAL: Failed to submit log task to executor: {e}")

    return response  # Return the original response


def setup_logging():
    """Configures the root logger."""
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] - %(message)s",
    )
    # Silence excessively verbose libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

    logger.info(f"Logging configured with level {config.LOG_LEVEL}")


def shutdown_log_executor(wait=True):
    """Shuts down the background logging thread pool."""
    logger.info(f"Attempting to shut down log executor (wait={wait})...")
    log_executor.shutdown(wait=wait)
    logger.info("Log executor shut down complete.")


# Register the shutdown function to be called on exit
atexit.register(shutdown_log_executor)
