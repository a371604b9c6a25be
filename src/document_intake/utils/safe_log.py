"""PII-safe logging module -- drop-in replacement for print().

Scanned timesheets and invoices carry tax file numbers, bank details and
dates of birth. Anything passed as structured data is redacted before it
reaches CloudWatch Logs.

Usage:
    from document_intake.utils.safe_log import safe_log
    safe_log("Processing document", data=extracted, file_id=file_id)
    safe_log("Upload failed", level="ERROR", error=str(e))
"""

import copy
import json
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Set

MAX_DATA_CHARS = 10240

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


# Redaction strategies by PII type
def _redact_tfn(value: str) -> str:
    digits = re.sub(r"[^0-9]", "", str(value))
    return f"*** *** {digits[-3:]}" if len(digits) >= 3 else "*** *** ***"


def _redact_abn(value: str) -> str:
    digits = re.sub(r"[^0-9]", "", str(value))
    return f"** *** *** {digits[-3:]}" if len(digits) >= 3 else "** *** *** ***"


def _redact_account(value: str) -> str:
    digits = re.sub(r"[^0-9]", "", str(value))
    return f"****{digits[-4:]}" if len(digits) >= 4 else "****"


def _redact_dob(value: str) -> str:
    match = re.search(r"(19|20)\d{2}", str(value))
    return f"**/**/{match.group()}" if match else "**/**/****"


_REDACTORS = {
    "tfn": _redact_tfn,
    "abn": _redact_abn,
    "account": _redact_account,
    "dob": _redact_dob,
}

# Normalised field names (lowercase, alphanumerics only) -> PII type.
# Covers both JSON attribute names and OCR'd form labels such as
# "Tax File Number:" or "Account No."
_PII_FIELDS = {
    "tfn": "tfn",
    "taxfilenumber": "tfn",
    "taxfileno": "tfn",
    "abn": "abn",
    "australianbusinessnumber": "abn",
    "bsb": "account",
    "bsbnumber": "account",
    "accountnumber": "account",
    "accountno": "account",
    "bankaccount": "account",
    "bankaccountnumber": "account",
    "dob": "dob",
    "dateofbirth": "dob",
}


def normalize_field_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", str(name).lower())


def pii_type_for(name: str) -> Optional[str]:
    """Return the PII type for a field name or form label, if it is sensitive."""
    return _PII_FIELDS.get(normalize_field_name(name))


def _redact_by_field_name(data: Any, visited: Optional[Set[int]] = None) -> Any:
    """Walk structure and redact known PII field names."""
    if visited is None:
        visited = set()
    obj_id = id(data)
    if obj_id in visited:
        return data
    visited.add(obj_id)

    if isinstance(data, dict):
        result = {}
        for k, v in data.items():
            pii_type = pii_type_for(k)
            if pii_type and isinstance(v, (str, int)) and v != "":
                result[k] = _REDACTORS[pii_type](v)
            else:
                result[k] = _redact_by_field_name(v, visited)
        return result
    elif isinstance(data, list):
        return [_redact_by_field_name(item, visited) for item in data]
    return data


def redact_pii(data: Any) -> Any:
    """Deep-copy data and redact all PII fields."""
    if data is None:
        return None
    try:
        redacted = copy.deepcopy(data)
    except (TypeError, copy.Error):
        return {"__redacted__": "deep copy failed"}
    return _redact_by_field_name(redacted)


class SafeEncoder(json.JSONEncoder):
    """JSON encoder for DynamoDB and boto3 response values."""

    def default(self, obj):
        if isinstance(obj, Decimal):
            return float(obj)
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, (bytes, bytearray)):
            return "<bytes>"
        if isinstance(obj, set):
            return sorted(obj, key=str)
        return str(obj)


def _dump(value: Any) -> str:
    return json.dumps(redact_pii(value), cls=SafeEncoder)


def format_message(
    message: str,
    *args,
    level: str = "INFO",
    data: Any = None,
    **kwargs,
) -> str:
    """Build the log line ``safe_log`` prints."""
    level = level.upper() if level.upper() in LEVELS else "INFO"
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    parts = [f"[{timestamp}]", f"[{level}]", message]

    for arg in args:
        parts.append(_dump(arg) if isinstance(arg, (dict, list)) else str(arg))

    for k, v in kwargs.items():
        if pii_type_for(k) and isinstance(v, (str, int)):
            v = _REDACTORS[pii_type_for(k)](v)
        parts.append(f"{k}={_dump(v)}" if isinstance(v, (dict, list)) else f"{k}={v}")

    if data is not None:
        try:
            data_str = _dump(data)
            if len(data_str) > MAX_DATA_CHARS:
                data_str = data_str[:MAX_DATA_CHARS] + "... [TRUNCATED]"
            parts.append(data_str)
        except (TypeError, ValueError):
            parts.append(str(redact_pii(data))[:MAX_DATA_CHARS])

    return " ".join(parts)


def safe_log(
    message: str,
    *args,
    level: str = "INFO",
    data: Any = None,
    **kwargs,
) -> None:
    """PII-safe logging function."""
    print(format_message(message, *args, level=level, data=data, **kwargs), flush=True)
