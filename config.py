import os
import sys

from dotenv import load_dotenv

from enums.runtime_environment import RuntimeEnvironment

# Load .env but don't override existing environment variables
# This allows test scripts to set RUNTIME_ENVIRONMENT=TEST before import
load_dotenv(".env", override=False)


def _exit_on_invalid(name: str, reason: Exception, expected: str) -> None:
    print(f"\n ERROR: Invalid {name} configuration\n", file=sys.stderr)
    print(f"Reason: {reason}", file=sys.stderr)
    print(f"Expected: {expected}", file=sys.stderr)
    print(f"Current value: {os.environ.get(name, '(not set)')}\n", file=sys.stderr)
    sys.exit(1)


def _positive_int(name: str, default: str) -> int:
    try:
        value = int(os.environ.get(name, default))
        if value <= 0:
            raise ValueError(f"{name} must be positive (got: {value})")
        return value
    except ValueError as e:
        _exit_on_invalid(name, e, "Positive integer")


def _non_negative_float(name: str, default: str) -> float:
    try:
        value = float(os.environ.get(name, default))
        if value < 0:
            raise ValueError(f"{name} must not be negative (got: {value})")
        return value
    except ValueError as e:
        _exit_on_invalid(name, e, "Non-negative number")


# Parse RUNTIME_ENVIRONMENT with clear error message on misconfiguration
try:
    _runtime_env_str = os.environ.get("RUNTIME_ENVIRONMENT")
    if not _runtime_env_str:
        raise ValueError("RUNTIME_ENVIRONMENT environment variable is not set")
    RUNTIME_ENVIRONMENT = RuntimeEnvironment(_runtime_env_str)
except ValueError as e:
    valid_values = [env.value for env in RuntimeEnvironment]
    print(f"\n ERROR: Invalid RUNTIME_ENVIRONMENT configuration\n", file=sys.stderr)
    print(f"Reason: {e}", file=sys.stderr)
    print(f"Valid values: {', '.join(valid_values)}", file=sys.stderr)
    print(f"Current value: {os.environ.get('RUNTIME_ENVIRONMENT', '(not set)')}", file=sys.stderr)
    print(f"\nAdd to .env: RUNTIME_ENVIRONMENT={valid_values[0]}\n", file=sys.stderr)
    sys.exit(1)

WEBAPP_HOST = os.environ.get("WEBAPP_HOST", "0.0.0.0")
WEBAPP_PORT = int(os.environ.get("WEBAPP_PORT")) if os.environ.get("WEBAPP_PORT") else 5000
API_SECRET_TOKEN = os.environ.get("API_SECRET_TOKEN")

# Telegram admin notifications are optional: without TOKEN or ADMIN_ID_LIST
# the notification service logs and skips.
TOKEN = os.environ.get("TOKEN")
try:
    _admin_id_list_str = os.environ.get("ADMIN_ID_LIST", "")
    ADMIN_ID_LIST = [int(admin_id.strip()) for admin_id in _admin_id_list_str.split(',') if admin_id.strip()]
except ValueError as e:
    _exit_on_invalid("ADMIN_ID_LIST", e, "comma-separated list of Telegram user IDs, e.g. 123456789,987654321")

DB_NAME = os.environ.get("DB_NAME", "courier_sync.db")

# Courier API
COURIER_PARTNER_NAME = os.environ.get("COURIER_PARTNER_NAME", "alwaseet")
COURIER_API_URL = os.environ.get("COURIER_API_URL", "https://api.alwaseet-iq.net/v1/merchant")
COURIER_API_TIMEOUT_SECONDS = _non_negative_float("COURIER_API_TIMEOUT_SECONDS", "15")

# Delivery Sync Configuration
SYNC_ENABLED = os.environ.get("SYNC_ENABLED", "true") == "true"
SYNC_INTERVAL_MINUTES = _positive_int("SYNC_INTERVAL_MINUTES", "10")
SYNC_DEBOUNCE_MINUTES = _positive_int("SYNC_DEBOUNCE_MINUTES", "3")
SYNC_FORCE_REFRESH_DAYS = _positive_int("SYNC_FORCE_REFRESH_DAYS", "60")
SYNC_BOOTSTRAP_DAYS = _positive_int("SYNC_BOOTSTRAP_DAYS", "7")
SYNC_PAGE_SIZE = _positive_int("SYNC_PAGE_SIZE", "50")
SYNC_FULL_CONCURRENCY = _positive_int("SYNC_FULL_CONCURRENCY", "3")
SYNC_INCREMENTAL_CONCURRENCY = _positive_int("SYNC_INCREMENTAL_CONCURRENCY", "10")
ORDER_SYNC_BATCH_LIMIT = _positive_int("ORDER_SYNC_BATCH_LIMIT", "50")
SYNC_NOTIFY_ADMINS = os.environ.get("SYNC_NOTIFY_ADMINS", "true") == "true"

# Partial Delivery / Settlement
PARTIAL_DELIVERY_PRICE_TOLERANCE = _non_negative_float("PARTIAL_DELIVERY_PRICE_TOLERANCE", "100")
EMPLOYEE_PROFIT_SHARE_PERCENT = _non_negative_float("EMPLOYEE_PROFIT_SHARE_PERCENT", "50")

# Logging Configuration
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR, CRITICAL
LOG_MASK_SECRETS = os.environ.get("LOG_MASK_SECRETS", "true") == "true"  # Mask courier tokens in logs

# Log Retention: Environment-specific defaults
if RUNTIME_ENVIRONMENT == RuntimeEnvironment.DEV:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "30"))
else:
    LOG_RETENTION_DAYS = int(os.environ.get("LOG_RETENTION_DAYS", "5"))
