"""
Remote Session External Integrations
====================================

External services for session SLA monitoring:
- YAML escalation rules with a watchdog file watcher
- Slack webhook alerts
- APScheduler for the periodic SLA poll
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from itsm_portal.config import settings
from itsm_portal.remote_sessions.domain import EscalationPolicy
from itsm_portal.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class RulesFileHandler(FileSystemEventHandler):
    """
    Reloads the rules when their file changes.

    Editors that save through a temp file and rename show up as a move
    onto the rules path, so moves and creates count as changes too.
    """

    def __init__(self, rules_manager: "EscalationRulesManager", rules_path: Path):
        super().__init__()
        self.rules_manager = rules_manager
        self.rules_path = rules_path.resolve()

    def _touches_rules(self, event) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", None)]
        return any(p and Path(p).resolve() == self.rules_path for p in paths)

    def on_modified(self, event):
        if self._touches_rules(event):
            self.rules_manager.reload()

    on_created = on_modified
    on_moved = on_modified


class EscalationRulesManager:
    """
    Current escalation policy, swapped in whole on every successful reload.

    Readers on the event loop and the watchdog thread share the policy
    reference under a lock. A file that fails to parse or validate leaves
    the previous policy in place and is reported through ``last_error``.
    """

    def __init__(self):
        self._policy: Optional[EscalationPolicy] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer: Optional[Observer] = None
        self.reload_count = 0
        self.last_error: Optional[str] = None

    @property
    def policy(self) -> EscalationPolicy:
        with self._lock:
            if self._policy is None:
                raise RuntimeError("Escalation rules not loaded")
            return self._policy

    def load(self, path: Path) -> EscalationPolicy:
        """Read the rules for the first time; a missing file means no rules."""
        self._path = Path(path)
        policy = self._read(self._path)
        with self._lock:
            self._policy = policy
        return policy

    @staticmethod
    def _read(path: Path) -> EscalationPolicy:
        if not path.exists():
            logger.warning("Escalation rules file missing, no rules active", extra={"path": str(path)})
            return EscalationPolicy()
        data = yaml.safe_load(path.read_text()) or {}
        return EscalationPolicy(**data)

    def reload(self) -> bool:
        """Re-read the file. Returns False (keeping the old rules) on any error."""
        if self._path is None:
            return False

        try:
            policy = self._read(self._path)
        except Exception as e:
            self.last_error = str(e)
            logger.error(
                "Escalation rules rejected, keeping previous rules",
                extra={"path": str(self._path), "error": self.last_error}
            )
            return False

        with self._lock:
            self._policy = policy
        self.reload_count += 1
        self.last_error = None
        logger.info(
            "Escalation rules reloaded",
            extra={"rule_count": len(policy.rules), "active": len(policy.active_rules())}
        )
        return True

    def start_watching(self) -> None:
        """Watch the rules file's directory; no-op when the file is absent or inotify is missing."""
        if self._path is None:
            raise RuntimeError("Rules not loaded. Call load() first.")
        if not self._path.exists():
            logger.info("No escalation rules file to watch", extra={"path": str(self._path)})
            return

        observer = Observer()
        try:
            observer.schedule(RulesFileHandler(self, self._path), str(self._path.parent), recursive=False)
            observer.start()
        except OSError as e:
            logger.warning("Rules hot reload unavailable", extra={"error": str(e)})
            return
        self._observer = observer
        logger.info("Watching escalation rules", extra={"path": str(self._path)})

    def stop_watching(self) -> None:
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None


class CircuitBreaker:
    """
    Stops calling a failing webhook for a while.

    ``failure_threshold`` consecutive failures open the circuit; after
    ``recovery_timeout`` seconds it reports half_open and lets a call
    through. Success closes it, another failure opens it again.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._failures = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return self.CLOSED
        if time.monotonic() - self._opened_at >= self.recovery_timeout:
            return self.HALF_OPEN
        return self.OPEN

    def allow_request(self) -> bool:
        return self.state != self.OPEN

    def record_success(self) -> None:
        self._failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self._failures += 1
        if self._failures >= self.failure_threshold:
            self._opened_at = time.monotonic()
            logger.warning(
                "Slack circuit opened",
                extra={"failures": self._failures, "retry_after_seconds": self.recovery_timeout}
            )


# Alert kinds
ALERT_SLA_VIOLATED = "sla_violated"
ALERT_ESCALATION_RULE = "escalation_rule"


@dataclass
class SessionAlert:
    """Slack alert for a remote session."""
    session_id: str
    alert_type: str
    escalation_risk: str
    sla_status: str
    total_duration: int
    avg_response_time: float
    timestamp: str
    rule_name: Optional[str] = None
    escalation_action: Optional[str] = None


class SlackClient:
    """
    Slack webhook client with circuit breaker and retry logic.

    Handles sending session alerts to Slack with:
    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._timeout = timeout or settings.slack_timeout_seconds
        self._circuit_breaker = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    def _build_message(self, data: SessionAlert) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        if data.alert_type == ALERT_SLA_VIOLATED:
            header_text = ":rotating_light: Remote Session SLA Violated"
        else:
            header_text = f":warning: Escalation Rule Triggered: {data.rule_name}"

        fields = [
            {"type": "mrkdwn", "text": f"*Session:*\n{data.session_id}"},
            {"type": "mrkdwn", "text": f"*Risk:*\n{data.escalation_risk.title()}"},
            {"type": "mrkdwn", "text": f"*SLA Status:*\n{data.sla_status.replace('_', ' ').title()}"},
            {"type": "mrkdwn", "text": f"*Duration:*\n{data.total_duration // 60}m"},
            {"type": "mrkdwn", "text": f"*Avg Response:*\n{round(data.avg_response_time)}s"},
        ]
        if data.escalation_action:
            fields.append({"type": "mrkdwn", "text": f"*Action:*\n{data.escalation_action}"})

        return {
            "channel": self._channel,
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": header_text, "emoji": True}
                },
                {"type": "section", "fields": fields},
                {
                    "type": "context",
                    "elements": [{"type": "mrkdwn", "text": f"Evaluated: {data.timestamp}"}]
                },
            ],
        }

    async def send_alert(self, data: SessionAlert, max_retries: int = 3) -> bool:
        """
        Send alert to Slack webhook.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._webhook_url:
            logger.debug("Slack webhook URL not configured, skipping notification")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning(
                "Circuit breaker open, skipping Slack notification",
                extra={"session_id": data.session_id}
            )
            return False

        message = self._build_message(data)

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)

                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Slack notification sent",
                        extra={"session_id": data.session_id, "alert_type": data.alert_type}
                    )
                    return True

                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )

            except httpx.HTTPError as e:
                logger.error(
                    "Slack notification failed",
                    extra={"error": str(e), "attempt": attempt + 1, "session_id": data.session_id}
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(2 ** attempt)

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None


class SessionMonitorScheduler:
    """
    Wrapper for APScheduler running the periodic session SLA poll.

    Manages the lifecycle of the scheduler and its single job.
    """

    def __init__(self, interval_seconds: int = 30):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[Any]]) -> None:
        if self._running:
            logger.warning("Session monitor scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id="session_sla_poll",
            name="Remote Session SLA Poll",
            misfire_grace_time=self.interval_seconds,
            max_instances=1,
            replace_existing=True
        )
        self._scheduler.start()
        self._running = True

        logger.info(
            "Session monitor scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Session monitor scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._running
