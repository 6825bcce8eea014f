"""LoggingNotifier: default notifier; real email/WhatsApp transport lives elsewhere."""
import logging

logger = logging.getLogger("jt.notify")


class LoggingNotifier:
    async def notify_order_validated(self, order_id: str) -> None:
        logger.info("[Notification] Order %s validated, final payment requested", order_id)

    async def notify_order_rejected(self, order_id: str, reason: str) -> None:
        logger.info("[Notification] Order %s rejected. Reason: %s", order_id, reason)

    async def notify_final_payment_rejected(self, order_id: str, reason: str) -> None:
        logger.info(
            "[Notification] Final payment for order %s rejected, re-upload required. Reason: %s",
            order_id, reason,
        )

    async def notify_order_paid(self, order_id: str) -> None:
        logger.info("[Notification] Order %s fully paid", order_id)
