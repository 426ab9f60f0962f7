from deliverydesk.crud import notification as notification_crud


class DatabaseNotificationSink:
    """
    Writes in-app notifications. Each call opens its own session so sends can
    run concurrently with each other and with the fulfillment call.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def send(self, user_id: str, title: str, message: str, kind: str = "success"):
        async with self.session_factory() as db:
            return await notification_crud.create_notification(db, user_id, title, message, kind)

    async def user_name(self, user_id: str) -> str:
        async with self.session_factory() as db:
            return await notification_crud.get_user_name(db, user_id)
