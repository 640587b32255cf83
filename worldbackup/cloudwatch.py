"""Optional CloudWatch Logs spans for backup runs.

Activated when `cloudwatch_log_group` is set in the config and boto3 is
installed (`pip install -e ".[aws]"`). Every run gets its own log stream,
<world>/<YYYY/MM/DD>/<trace_id>, and each span is one JSON message:

    stage   measure, make-room, snapshot, compress   (elapsed_ms)
    retain  evict, compress                          (snapshot)
    run     start, done, failed                      (snapshot, error)

CloudWatch Insights query for one run:
    filter trace_id = "abc12345" | sort @timestamp asc
"""

import json
import threading
import time
import uuid
from datetime import datetime, timezone


class RunTracer:
    """Sends spans for one backup run. A tracer without a client drops everything."""

    def __init__(self, client=None, log_group=None, log_stream=None, trace_id=None):
        self.trace_id = trace_id or uuid.uuid4().hex[:8]
        self._client = client
        self._log_group = log_group
        self._log_stream = log_stream
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config, world_name):
        trace_id = uuid.uuid4().hex[:8]
        log_group = config.get("cloudwatch_log_group", "")
        if not log_group:
            return cls(trace_id=trace_id)
        log_stream = f"{world_name}/{datetime.now(timezone.utc).strftime('%Y/%m/%d')}/{trace_id}"
        try:
            import boto3
            client = boto3.client("logs")
        except Exception:
            return cls(trace_id=trace_id)
        tracer = cls(client, log_group, log_stream, trace_id)
        tracer._ensure_stream()
        return tracer

    @property
    def enabled(self):
        return self._client is not None

    def emit(self, span_type, name, elapsed_ms=None, **meta):
        """Send one span. Never raises: a tracing outage must not fail a backup."""
        if not self._client:
            return
        event = {
            "trace_id": self.trace_id,
            "span_type": span_type,
            "name": name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if elapsed_ms is not None:
            event["elapsed_ms"] = round(elapsed_ms)
        event.update(meta)
        with self._lock:
            try:
                self._client.put_log_events(
                    logGroupName=self._log_group,
                    logStreamName=self._log_stream,
                    logEvents=[{"timestamp": int(time.time() * 1000),
                                "message": json.dumps(event, default=str)}],
                )
            except Exception:
                pass

    def _ensure_stream(self):
        for create, kwargs in [
            (self._client.create_log_group, {"logGroupName": self._log_group}),
            (self._client.create_log_stream, {"logGroupName": self._log_group,
                                              "logStreamName": self._log_stream}),
        ]:
            try:
                create(**kwargs)
            except Exception:
                pass  # ResourceAlreadyExistsException or no permissions
