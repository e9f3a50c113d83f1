import sys
import socket
import logging
import threading
import requests
from typing import Any, Dict, List, Optional

from itest_runner.config import effective_settings as config


class LokiHandler(logging.Handler):
    """
    Pushes log records to Grafana Loki in batches from a background thread.

    Records are grouped into one stream per (logger, level). Child-process
    lines keep their raw text and are labelled with the child's name.
    """

    def __init__(self, url: str, org_id: Optional[str] = None, job: str = "itest-runner") -> None:
        """
        :param url: The base URL of the Loki instance.
        :param org_id: The tenant ID for Loki, sent as 'X-Scope-OrgID'.
        :param job: The value of the 'job' label on every stream.
        """
        super().__init__()
        self.url = f"{url.rstrip('/')}/loki/api/v1/push"
        self.org_id = org_id
        self.job = job
        self.hostname = socket.gethostname()
        self.flush_interval = config.LOG_BUFFER_FLUSH_INTERVAL
        self.batch_size = config.LOKI_BATCH_SIZE

        self.pending: List[logging.LogRecord] = []
        self.pending_lock = threading.Lock()
        self.stop_event = threading.Event()
        self.flush_thread = threading.Thread(target=self._periodic_flush, daemon=True, name="LokiFlushThread")
        self.flush_thread.start()

    def _periodic_flush(self) -> None:
        while not self.stop_event.wait(self.flush_interval):
            self.flush()

    def emit(self, record: logging.LogRecord) -> None:
        with self.pending_lock:
            self.pending.append(record)
            full = len(self.pending) >= self.batch_size
        if full:
            self.flush()

    def _labels(self, record: logging.LogRecord) -> Dict[str, str]:
        if record.name.startswith('proc.'):
            source, logger_name = "child", record.name.split('.', 1)[1]
        else:
            source, logger_name = "runner", record.name
        return {
            "job": self.job,
            "source": source,
            "logger": logger_name,
            "level": record.levelname.lower(),
            "hostname": self.hostname,
        }

    def build_payload(self, records: List[logging.LogRecord]) -> Dict[str, Any]:
        """Groups records into Loki streams keyed by their label set."""
        streams: Dict[tuple, Dict[str, Any]] = {}
        for record in records:
            labels = self._labels(record)
            message = record.getMessage() if record.name.startswith('proc.') else self.format(record)
            stream = streams.setdefault(tuple(sorted(labels.items())), {"stream": labels, "values": []})
            stream["values"].append([str(int(record.created * 1e9)), message])
        return {"streams": list(streams.values())}

    def flush(self) -> None:
        """Sends all pending records. The network call happens outside the lock."""
        with self.pending_lock:
            records, self.pending = self.pending, []
        if not records:
            return

        headers = {'Content-Type': 'application/json'}
        if self.org_id:
            headers['X-Scope-OrgID'] = self.org_id
        try:
            response = requests.post(self.url, json=self.build_payload(records), headers=headers, timeout=5)
            # 204 No Content is the success status for Loki push
            if response.status_code != 204:
                print(f"ERROR: Loki returned {response.status_code} - {response.text}", file=sys.stderr)
        except requests.RequestException as e:
            print(f"CRITICAL: Failed to send {len(records)} logs to Loki: {e}", file=sys.stderr)

    def close(self) -> None:
        """Stops the flush thread and sends whatever is still pending."""
        self.stop_event.set()
        if self.flush_thread.is_alive():
            self.flush_thread.join(timeout=self.flush_interval + 2)
        self.flush()
        super().close()
