"""
Utility functions for Oasis Staking Rewards.
"""

import logging
import time
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Optional, Union

from config.settings import ROSE_DECIMALS


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Setup logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def retry(max_attempts: int = 3, delay: float = 1.0, backoff: float = 2.0):
    """
    Retry decorator with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (1 disables retrying)
        delay: Initial delay between retries in seconds
        backoff: Multiplier for delay after each retry

    Returns:
        Decorated function
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            current_delay = delay
            last_exception = None

            for attempt in range(max(1, max_attempts)):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    last_exception = e
                    if attempt < max_attempts - 1:
                        logging.warning(
                            f"{func.__name__} failed (attempt {attempt + 1}/{max_attempts}): {e}"
                        )
                        time.sleep(current_delay)
                        current_delay *= backoff

            raise last_exception

        return wrapper

    return decorator


def format_amount(
    amount: Union[int, str],
    decimals: int = ROSE_DECIMALS,
    extra_decimals: int = 0,
) -> str:
    """
    Render a base-unit integer amount as an exact decimal string.

    Works on the digit string of the integer, so no precision is lost for
    amounts beyond float range. Trailing fractional zeros are stripped.

    Args:
        amount: Amount in base units (int or decimal integer string)
        decimals: Fractional digits of the denomination
        extra_decimals: Additional fractional digits for pre-scaled values
            (e.g. 18 for a share price multiplied by 10**18)

    Returns:
        Decimal string (e.g. 1500000000 -> "1.5", -5 -> "-0.000000005")

    Raises:
        ValueError: If amount is not an integer
    """
    value = int(amount) if isinstance(amount, str) else amount
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"Amount must be an integer, got {amount!r}")

    total_decimals = decimals + extra_decimals
    if total_decimals < 0:
        raise ValueError("Decimal width cannot be negative")

    negative = value < 0
    digits = str(abs(value))

    if total_decimals == 0:
        int_part, frac_part = digits, ""
    else:
        padded = digits.rjust(total_decimals + 1, "0")
        int_part = padded[:-total_decimals]
        frac_part = padded[-total_decimals:].rstrip("0")

    result = f"{int_part}.{frac_part}" if frac_part else int_part
    if negative and value != 0:
        return f"-{result}"
    return result


def parse_amount(
    text: str,
    decimals: int = ROSE_DECIMALS,
    extra_decimals: int = 0,
) -> int:
    """
    Parse a decimal string produced by format_amount back into base units.

    Args:
        text: Decimal string (e.g. "-1.5")
        decimals: Fractional digits of the denomination
        extra_decimals: Additional fractional digits for pre-scaled values

    Returns:
        Amount in base units

    Raises:
        ValueError: If text is not a plain decimal or has too many fractional digits
    """
    total_decimals = decimals + extra_decimals
    text = text.strip()
    negative = text.startswith("-")
    body = text[1:] if negative else text

    int_part, _, frac_part = body.partition(".")
    if not int_part.isdigit() or (frac_part and not frac_part.isdigit()):
        raise ValueError(f"Not a decimal amount: {text!r}")
    if len(frac_part) > total_decimals:
        raise ValueError(f"{text!r} has more than {total_decimals} fractional digits")

    value = int(int_part + frac_part.ljust(total_decimals, "0"))
    return -value if negative else value


def normalize_address(address: Optional[str]) -> str:
    """
    Normalize an address to lowercase for consistent comparison.

    Returns empty string for None.
    """
    return (address or "").strip().lower()


def safe_get(obj: Any, path: str, default: Any = None) -> Any:
    """
    Safely get a nested dict value.

    Args:
        obj: Source mapping
        path: Dot-separated path like "body.amount"
        default: Value returned when any part is missing or None

    Returns:
        Value at path or default
    """
    current = obj
    for part in path.split("."):
        if not isinstance(current, dict):
            return default
        current = current.get(part)
        if current is None:
            return default
    return current


def format_timestamp_date(timestamp: Optional[str]) -> str:
    """
    Format an ISO-8601 timestamp as YYYY-MM-DD.

    Args:
        timestamp: ISO timestamp such as "2024-01-01T00:02:31Z"

    Returns:
        Date string, or "N/A" when unknown or unparseable
    """
    if not timestamp:
        return "N/A"
    try:
        return datetime.fromisoformat(timestamp.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return "N/A"


def truncate_address(address: str, chars: int = 10) -> str:
    """
    Truncate an address for display.

    Args:
        address: Bech32 address
        chars: Number of characters to show on each end

    Returns:
        Truncated address (e.g., "oasis1qq3x...scnlwxe")
    """
    if len(address) <= chars * 2 + 3:
        return address
    return f"{address[:chars]}...{address[-chars:]}"
