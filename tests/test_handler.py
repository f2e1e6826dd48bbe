# tests/test_handler.py
import json
import os
import unittest
from unittest.mock import MagicMock, patch

import pytest
import requests

from lambdas.alarm_log_notifier import app

ENV = {
    "AWS_REGION": "us-east-1",
    "SLACK_TOKEN": "/slack/token",
    "SLACK_CHANNEL": "/slack/channel",
    "SLACK_SIGNING_SECRET": "/slack/signing-secret",
}
PARAMETERS = {
    "/slack/token": "xoxb-test",
    "/slack/channel": "C0123456",
    "/slack/signing-secret": "shhh",
}


def body_of(response: dict) -> dict:
    assert response["statusCode"] == 200
    return json.loads(response["body"])


class AwsClients:
    """Hands out one mock client per service name, the way boto3.client is called."""
    def __init__(self):
        self.logs = MagicMock()
        self.logs.describe_metric_filters.return_value = {
            "metricFilters": [{"logGroupName": "/my/group", "filterPattern": "ERROR"}]
        }
        self.logs.describe_log_streams.return_value = {
            "logStreams": [{"logStreamName": "2024/01/01/[$LATEST]abc"}]
        }
        self.logs.filter_log_events.return_value = {
            "events": [
                {"message": "ERROR first", "timestamp": 1704110340000},
                {"message": "ERROR second", "timestamp": 1704110350000},
            ]
        }
        self.ssm = MagicMock()
        self.ssm.get_parameter.side_effect = lambda Name, WithDecryption: {"Parameter": {"Value": PARAMETERS[Name]}}

    def __call__(self, service_name, **kwargs):
        return {"logs": self.logs, "ssm": self.ssm}[service_name]


@pytest.fixture
def aws():
    clients = AwsClients()
    with patch("lambdas.alarm_log_notifier.app.boto3.client", side_effect=clients) as mock_client, \
            patch.dict(os.environ, ENV):
        clients.client = mock_client
        yield clients


@pytest.fixture
def slack_post():
    with patch("lambdas.alarm_log_notifier.slack_client.requests.post") as mock_post:
        mock_post.return_value.json.return_value = {"ok": True, "channel": "C0123456", "ts": "1.0"}
        yield mock_post


def test_no_records_makes_no_calls(aws, slack_post):
    response = app.handler({"Records": []}, None)

    assert body_of(response)["message"] == "No event records"
    aws.client.assert_not_called()
    slack_post.assert_not_called()


def test_no_metric_filter_means_no_logs(aws, slack_post, sns_event):
    aws.logs.describe_metric_filters.return_value = {"metricFilters": []}

    assert body_of(app.handler(sns_event, None))["message"] == "No logs"
    aws.ssm.get_parameter.assert_not_called()
    slack_post.assert_not_called()


def test_no_log_stream_means_no_logs(aws, slack_post, sns_event):
    aws.logs.describe_log_streams.return_value = {"logStreams": []}

    assert body_of(app.handler(sns_event, None))["message"] == "No logs"
    slack_post.assert_not_called()


def test_no_events_means_no_logs(aws, slack_post, sns_event):
    aws.logs.filter_log_events.return_value = {"events": []}

    assert body_of(app.handler(sns_event, None))["message"] == "No logs"
    slack_post.assert_not_called()


def test_one_slack_message_per_event(aws, slack_post, sns_event):
    body = body_of(app.handler(sns_event, None))

    assert body == {"message": "Success", "delivered": 2, "suppressed": 0}
    assert slack_post.call_count == 2
    texts = sorted(c.kwargs["json"]["attachments"][0]["text"] for c in slack_post.call_args_list)
    assert texts == ["ERROR first", "ERROR second"]
    for c in slack_post.call_args_list:
        assert c.kwargs["headers"] == {"Authorization": "Bearer xoxb-test"}
        assert c.kwargs["json"]["channel"] == "C0123456"


def test_delivery_failure_still_reports_success(aws, slack_post, sns_event):
    slack_post.side_effect = requests.exceptions.ConnectionError("connection refused")

    body = body_of(app.handler(sns_event, None))

    assert body == {"message": "Success", "delivered": 0, "suppressed": 2}


def test_credential_failure_still_reports_success(aws, slack_post, sns_event):
    aws.ssm.get_parameter.side_effect = RuntimeError("ssm unavailable")

    body = body_of(app.handler(sns_event, None))

    assert body == {"message": "Success", "delivered": 0, "suppressed": 1}
    slack_post.assert_not_called()


def test_missing_configuration_sends_nothing(aws, slack_post, sns_event):
    with patch.dict(os.environ, {"SLACK_CHANNEL": ""}):
        body = body_of(app.handler(sns_event, None))

    assert body == {"message": "Success", "delivered": 0, "suppressed": 0}
    slack_post.assert_not_called()


def test_malformed_payload_fails_invocation(aws, sns_event_factory):
    with pytest.raises(json.JSONDecodeError):
        app.handler(sns_event_factory("{not json"), None)


class TestClientsUseConfiguredRegion(unittest.TestCase):

    @patch("lambdas.alarm_log_notifier.app.boto3.client")
    @patch.dict(os.environ, {**ENV, "AWS_REGION": "eu-west-1"})
    def test_region_comes_from_settings(self, mock_boto_client):
        """
        Tests that the boto3 clients are created in the region from AWS_REGION.
        """
        mock_boto_client.return_value.describe_metric_filters.return_value = {"metricFilters": []}
        event = {"Records": [{"Sns": {"Message": json.dumps({
            "AlarmName": "api-5xx",
            "StateChangeTime": "2024-01-01T12:00:00.000+0000",
            "Trigger": {"MetricName": "Api5xxCount", "Namespace": "MyApp/Api"},
        })}}]}

        app.handler(event, None)

        mock_boto_client.assert_called_once_with("logs", region_name="eu-west-1")


if __name__ == '__main__':
    unittest.main()
