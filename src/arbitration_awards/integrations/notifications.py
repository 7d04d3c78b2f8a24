from __future__ import annotations

from arbitration_awards.integrations.base import Notification
from arbitration_awards.observability.logging import get_logger

logger = get_logger("arbitration_awards.notifications")


class LoggingNotificationService:
    """Delivers notifications to the structured log; channel selection lives elsewhere."""

    def send(self, notification: Notification) -> None:
        logger.info("notification_sent", **notification.as_dict())


class LoggingAnalysisTrigger:
    def request_reanalysis(self, case_id: str, notes: str) -> None:
        logger.info("reanalysis_requested", case_id=case_id, notes_length=len(notes))
