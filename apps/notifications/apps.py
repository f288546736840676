from django.apps import AppConfig  # type: ignore


class NotificationsConfig(AppConfig):
    name = "apps.notifications"
    label = "notifications"

    def ready(self) -> None:
        from . import handlers  # noqa: F401
