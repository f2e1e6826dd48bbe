# lambdas/alarm_log_notifier/log_resolver.py
import logging
from datetime import datetime, timedelta

from .models import AlarmNotification, LogBundle, LogEvent, LogQuery, LogSource

logger = logging.getLogger()

# Metric evaluation lags the log line, so look back further than forward.
WINDOW_BEFORE = timedelta(minutes=5)
WINDOW_AFTER = timedelta(minutes=1)
EVENT_LIMIT = 10


def build_time_window(state_change_time: datetime) -> tuple[datetime, datetime]:
    """Returns the (start, end) of the log query for an alarm state change."""
    return state_change_time - WINDOW_BEFORE, state_change_time + WINDOW_AFTER


def to_epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class LogResolver:
    """
    Walks from an alarm's metric back to the log lines that produced it:
    metric filter -> log group/pattern -> latest stream -> filtered events.
    """
    def __init__(self, logs_client):
        """
        Args:
            logs_client: A boto3 CloudWatch Logs client.
        """
        self.logs = logs_client

    def resolve_log_source(self, metric_name: str, namespace: str) -> LogSource | None:
        """
        Looks up the metric filter registered for a metric and returns the
        log group and filter pattern of the first match.
        """
        response = self.logs.describe_metric_filters(
            metricName=metric_name,
            metricNamespace=namespace,
        )
        metric_filters = response.get('metricFilters') or []
        if not metric_filters:
            logger.info(f"ℹ️ No metric filter found for {namespace}/{metric_name}.")
            return None

        log_group_name = metric_filters[0].get('logGroupName')
        filter_pattern = metric_filters[0].get('filterPattern')
        if not log_group_name or not filter_pattern:
            logger.info(f"ℹ️ Metric filter for {namespace}/{metric_name} has no log group or pattern.")
            return None
        return LogSource(log_group_name=log_group_name, filter_pattern=filter_pattern)

    def select_latest_stream(self, log_group_name: str) -> str | None:
        """Returns the name of the stream with the most recent event, if any."""
        response = self.logs.describe_log_streams(
            logGroupName=log_group_name,
            orderBy='LastEventTime',
            descending=True,
            limit=1,
        )
        log_streams = response.get('logStreams') or []
        if not log_streams:
            logger.info(f"ℹ️ Log group '{log_group_name}' has no log streams.")
            return None
        return log_streams[0].get('logStreamName') or None

    def query_events(self, query: LogQuery) -> list[LogEvent]:
        """
        Fetches up to query.limit events matching the filter pattern in the
        query window. Only the first page is read.
        """
        response = self.logs.filter_log_events(
            logGroupName=query.log_group_name,
            filterPattern=query.filter_pattern,
            logStreamNames=[query.log_stream_name],
            startTime=to_epoch_millis(query.start_time),
            endTime=to_epoch_millis(query.end_time),
            limit=query.limit,
        )
        return [LogEvent.from_api(raw) for raw in response.get('events') or []]

    def describe_logs(self, alarm: AlarmNotification) -> LogBundle | None:
        """
        Resolves the log lines behind an alarm.

        Returns:
            A LogBundle (possibly with no events), or None when the alarm's
            metric has no metric filter or its log group has no streams.
        """
        source = self.resolve_log_source(alarm.metric_name, alarm.namespace)
        if not source:
            return None

        log_stream_name = self.select_latest_stream(source.log_group_name)
        if not log_stream_name:
            return None

        start_time, end_time = build_time_window(alarm.state_change_time)
        query = LogQuery(
            log_group_name=source.log_group_name,
            filter_pattern=source.filter_pattern,
            log_stream_name=log_stream_name,
            start_time=start_time,
            end_time=end_time,
            limit=EVENT_LIMIT,
        )
        logger.info(
            f"Querying '{query.log_group_name}' / '{query.log_stream_name}' "
            f"from {start_time.isoformat()} to {end_time.isoformat()}..."
        )
        events = self.query_events(query)
        logger.info(f"Found {len(events)} matching log event(s).")

        return LogBundle(
            alarm_name=alarm.alarm_name,
            filter_pattern=source.filter_pattern,
            log_group_name=source.log_group_name,
            log_stream_name=log_stream_name,
            events=tuple(events),
        )
