# storefront/services/notification_service.py
from kombu.exceptions import OperationalError

from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

ORDER_EVENTS = ("created", "cancelled", "shipped", "delivered")


class NotificationService:
    """
    Sends order notifications.
    Uses Celery for asynchronous processing.
    """

    @staticmethod
    def send_order_notification(event: str, order: dict) -> bool:
        """
        Called after the order change has committed, so a broker outage must
        not turn a completed request into an error.
        """
        if event not in ORDER_EVENTS:
            raise ValueError(f"Unknown order event: {event}")
        try:
            send_order_notification_task.delay(event, order["order_number"], order.get("user_id"))
        except OperationalError as e:
            logger.warning(f"Could not queue '{event}' notification for order {order['order_number']}: {e}")
            return False
        return True


@celery_app.task(name="storefront.services.notification_service.send_order_notification_task")
def send_order_notification_task(event: str, order_number: str, user_id: str | None):
    """
    Celery task. A real deployment would hand this to an email/SMS provider;
    here the notification is only logged.
    """
    recipient = user_id or "guest"
    logger.info(f"[NOTIFICATION] {recipient}: order {order_number} {event}")

    return {"event": event, "order_number": order_number, "user_id": user_id, "status": "sent"}
