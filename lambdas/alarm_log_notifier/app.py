# lambdas/alarm_log_notifier/app.py
import json
import logging

import boto3

from .event_decoder import parse_alarm_notification
from .log_resolver import LogResolver
from .models import Delivered, Suppressed, get_settings
from .slack_client import notify

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def build_response(message: str, **extra) -> dict:
    """Every outcome is reported as a 200, the alarm pipeline never sees a failure."""
    return {
        "statusCode": 200,
        "body": json.dumps({"message": message, **extra}),
    }


def handler(event, context):
    """
    Main Lambda handler, triggered by an SNS notification of a CloudWatch
    alarm state change. Posts the log lines behind the alarm to Slack.
    """
    logger.info(f"EVENT: \n{json.dumps(event, indent=2, default=str)}")

    # Step 1: Decode. A malformed payload fails the invocation.
    alarm = parse_alarm_notification(event)
    if alarm is None:
        logger.info("ℹ️ No records to process. Exiting.")
        return build_response("No event records")

    settings = get_settings()
    logger.info(f"Alarm '{alarm.alarm_name}' changed state at {alarm.state_change_time.isoformat()}")

    # Step 2: Resolve the log lines behind the alarm
    logs_client = boto3.client('logs', region_name=settings.aws_region)
    log_bundle = LogResolver(logs_client).describe_logs(alarm)
    if not log_bundle or not log_bundle.events:
        logger.info("ℹ️ No logs found for this alarm. Nothing to send.")
        return build_response("No logs")

    # Step 3: Compose and deliver, failures are logged and suppressed
    ssm_client = boto3.client('ssm', region_name=settings.aws_region)
    results = notify(log_bundle, ssm_client, settings)
    logger.info(f"RESULT: \n{json.dumps([_describe_result(r) for r in results], indent=2)}")

    return build_response(
        "Success",
        delivered=sum(1 for r in results if isinstance(r, Delivered)),
        suppressed=sum(1 for r in results if isinstance(r, Suppressed)),
    )


def _describe_result(result) -> dict:
    if isinstance(result, Delivered):
        return {"status": "delivered", "channel": result.channel, "ts": result.ts}
    return {"status": "suppressed", "stage": result.stage, "error": str(result.cause)}
