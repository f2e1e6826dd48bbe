# lambdas/alarm_log_notifier/formatter.py
import re
from datetime import datetime, timezone
from urllib.parse import quote

from .models import LogBundle, LogEvent, LogFields

# Configuration
# Values shown when LOG_FIELD_MODE=placeholder.
PLACEHOLDER_ERROR_CODE = 500
PLACEHOLDER_API = "GET /users"
ASSIGNEE = "<!channel>"
NOT_AVAILABLE = "N/A"

# Characters encodeURIComponent leaves alone on top of quote()'s "_.-~".
_URI_COMPONENT_SAFE = "!*'()"

_STATUS_PATTERNS = (
    # status=503, "statusCode": 502, status_code: 404
    re.compile(r"""\bstatus(?:[_ ]?code)?["']?\s*[:=]\s*["']?([1-5]\d{2})\b""", re.IGNORECASE),
    # access log style: "GET /users HTTP/1.1" 500
    re.compile(r'HTTP/\d(?:\.\d)?"?\s+([1-5]\d{2})\b'),
)
_API_PATTERN = re.compile(r"\b(GET|POST|PUT|PATCH|DELETE|HEAD|OPTIONS)\s+(/[^\s\"'?]*)")


def _encode_twice(value: str) -> str:
    # The console decodes the fragment twice.
    return quote(quote(value, safe=_URI_COMPONENT_SAFE), safe=_URI_COMPONENT_SAFE)


def build_deep_link(region: str, log_group_name: str, log_stream_name: str) -> str:
    """Builds the CloudWatch console URL of a log stream."""
    return (
        f"https://{region}.console.aws.amazon.com/cloudwatch/home?region={region}"
        f"#logsV2:log-groups/log-group/{_encode_twice(log_group_name)}"
        f"/log-events/{_encode_twice(log_stream_name)}"
    )


def format_timestamp(value: datetime | None) -> str:
    """
    Renders a datetime as "YYYY-MM-DD HH:MM:SS UTC".
    Returns "N/A" for a missing value.
    """
    if value is None:
        return NOT_AVAILABLE
    return value.astimezone(timezone.utc).strftime('%Y-%m-%d %H:%M:%S %Z')


def parse_error_code(message: str) -> int | None:
    """Finds an HTTP status code in a log line, if one is spelled out."""
    for pattern in _STATUS_PATTERNS:
        match = pattern.search(message)
        if match:
            return int(match.group(1))
    return None


def parse_api(message: str) -> str | None:
    """Finds a "METHOD /path" request line in a log line."""
    match = _API_PATTERN.search(message)
    if not match:
        return None
    return f"{match.group(1)} {match.group(2)}"


def extract_log_fields(event: LogEvent, mode: str = "placeholder") -> LogFields:
    """
    Works out the Timestamp, ErrorCode and API fields for an event.

    In "placeholder" mode the fields are static sample values and the
    timestamp is the time of formatting. In "parsed" mode they come from the
    event itself and are None when the log line does not carry them.
    """
    if mode == "parsed":
        event_time = None
        if event.timestamp is not None:
            event_time = datetime.fromtimestamp(event.timestamp / 1000, tz=timezone.utc)
        return LogFields(
            timestamp=format_timestamp(event_time),
            error_code=parse_error_code(event.message),
            api=parse_api(event.message),
        )

    return LogFields(
        timestamp=format_timestamp(datetime.now(timezone.utc)),
        error_code=PLACEHOLDER_ERROR_CODE,
        api=PLACEHOLDER_API,
    )


def severity_color(error_code: int | None) -> str:
    return "danger" if error_code is not None and error_code >= 500 else "warning"


def build_attachment(bundle: LogBundle, event: LogEvent, region: str, mode: str = "placeholder") -> dict:
    """Builds the Slack attachment for a single log event."""
    fields = extract_log_fields(event, mode)
    error_code = str(fields.error_code) if fields.error_code is not None else NOT_AVAILABLE

    return {
        "mrkdwn_in": ["text"],
        "color": severity_color(fields.error_code),
        "title": bundle.alarm_name,
        "title_link": build_deep_link(region, bundle.log_group_name, bundle.log_stream_name),
        "text": event.message,
        "fallback": event.message,
        "fields": [
            {"title": "Timestamp", "value": fields.timestamp, "short": True},
            {"title": "ErrorCode", "value": error_code, "short": True},
            {"title": "API", "value": fields.api or NOT_AVAILABLE, "short": True},
            {"title": "Assignee", "value": ASSIGNEE, "short": True},
        ],
    }


def format_slack_message(channel: str, attachment: dict) -> dict:
    """Wraps an attachment into a chat.postMessage request body."""
    return {"channel": channel, "attachments": [attachment]}
