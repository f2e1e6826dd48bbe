# lambdas/alarm_log_notifier/parameters.py
import logging

from .models import AppSettings, SlackCredentials

logger = logging.getLogger()


def get_parameter(ssm_client, name: str) -> str:
    """
    Reads and decrypts a single SSM parameter. An empty name means the
    parameter is not configured and yields an empty string.

    Raises:
        botocore.exceptions.ClientError: If SSM rejects the lookup
            (e.g. ParameterNotFound, AccessDenied).
    """
    if not name:
        return ""
    response = ssm_client.get_parameter(Name=name, WithDecryption=True)
    return response["Parameter"]["Value"]


def fetch_slack_credentials(ssm_client, settings: AppSettings) -> SlackCredentials:
    """Fetches the Slack token, channel and signing secret. Never cached."""
    parameter_names = ", ".join(
        name or "<unset>"
        for name in (
            settings.slack_token_parameter,
            settings.slack_channel_parameter,
            settings.slack_signing_secret_parameter,
        )
    )
    logger.info(f"Fetching Slack parameters: {parameter_names}")

    return SlackCredentials(
        token=get_parameter(ssm_client, settings.slack_token_parameter),
        channel=get_parameter(ssm_client, settings.slack_channel_parameter),
        signing_secret=get_parameter(ssm_client, settings.slack_signing_secret_parameter),
    )
