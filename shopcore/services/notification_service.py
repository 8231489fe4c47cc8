# shopcore/services/notification_service.py
from shopcore.celery_worker import celery_app
from shopcore.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Order notifications, dispatched through Celery so checkout never waits
    on email/SMS delivery.
    """

    @staticmethod
    def send_order_notification(user_id: int, order_id: int):
        send_order_notification_task.delay(user_id, order_id)


@celery_app.task(name="shopcore.services.notification_service.send_order_notification_task")
def send_order_notification_task(user_id: int, order_id: int):
    # delivery channel (mail, push) is plugged in here; for now the event is only logged
    logger.info(f"[NOTIFICATION] User {user_id}: order {order_id} received")
    return {"user_id": user_id, "order_id": order_id, "status": "sent"}
