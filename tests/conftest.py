# tests/conftest.py
import json

import pytest

from lambdas.alarm_log_notifier.models import AppSettings, LogBundle, LogEvent, SlackCredentials

STATE_CHANGE_TIME = "2024-01-01T12:00:00.000+0000"


def make_sns_event(alarm_payload: dict | str) -> dict:
    """Wraps an alarm payload into an SNS event, the way SNS delivers it."""
    message = alarm_payload if isinstance(alarm_payload, str) else json.dumps(alarm_payload)
    return {
        "Records": [
            {
                "EventSource": "aws:sns",
                "Sns": {
                    "Timestamp": "2024-01-01T12:00:05.000Z",
                    "Subject": "ALARM: \"api-5xx\" in US East (N. Virginia)",
                    "Message": message,
                },
            }
        ]
    }


@pytest.fixture
def alarm_payload() -> dict:
    return {
        "AlarmName": "api-5xx",
        "AlarmDescription": "5xx responses from the API",
        "NewStateValue": "ALARM",
        "StateChangeTime": STATE_CHANGE_TIME,
        "Trigger": {
            "MetricName": "Api5xxCount",
            "Namespace": "MyApp/Api",
            "Statistic": "SUM",
            "Period": 60,
        },
    }


@pytest.fixture
def sns_event(alarm_payload) -> dict:
    return make_sns_event(alarm_payload)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        aws_region="ap-northeast-1",
        slack_token_parameter="/slack/token",
        slack_channel_parameter="/slack/channel",
        slack_signing_secret_parameter="/slack/signing-secret",
        log_field_mode="placeholder",
    )


@pytest.fixture
def credentials() -> SlackCredentials:
    return SlackCredentials(token="xoxb-test", channel="C0123456", signing_secret="shhh")


@pytest.fixture
def log_bundle() -> LogBundle:
    return LogBundle(
        alarm_name="api-5xx",
        filter_pattern="?ERROR ?Exception",
        log_group_name="/my/group",
        log_stream_name="2024/01/01/[$LATEST]abc",
        events=(
            LogEvent(message='ERROR "GET /orders HTTP/1.1" 503', timestamp=1704110340000, log_stream_name="2024/01/01/[$LATEST]abc"),
            LogEvent(message="ERROR NullPointerException in handler", timestamp=1704110350000, log_stream_name="2024/01/01/[$LATEST]abc"),
            LogEvent(message="ERROR status=404 POST /users/42", timestamp=1704110360000, log_stream_name="2024/01/01/[$LATEST]abc"),
        ),
    )


@pytest.fixture
def sns_event_factory():
    return make_sns_event
