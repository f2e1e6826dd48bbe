# lambdas/alarm_log_notifier/event_decoder.py
import json

from .models import AlarmNotification


def parse_alarm_notification(event: dict) -> AlarmNotification | None:
    """
    Decodes the alarm payload of the first SNS record.

    Args:
        event: The SNS event delivered to the Lambda.

    Returns:
        The decoded AlarmNotification, or None if the event has no records.

    Raises:
        KeyError: If the first record has no Sns.Message.
        json.JSONDecodeError: If the message is not JSON.
        pydantic.ValidationError: If the alarm payload is missing fields.
    """
    records = event.get('Records') or []
    if not records:
        return None

    # Only the first record is relayed.
    message_string = records[0]['Sns']['Message']
    return AlarmNotification.model_validate(json.loads(message_string))
