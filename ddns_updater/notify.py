# /ddns-updater/ddns_updater/notify.py
import logging
import threading

import requests

PRIORITY_INFO = 1
PRIORITY_WARNING = 2
PRIORITY_ERROR = 3
PRIORITY_FATAL = 4

NOTIFICATION_TITLE = "DDNS Updater"

module_logger = logging.getLogger("ddns_updater.notify")


class NullNotifier:
    def notify(self, priority: int, message: str) -> None:
        pass

    __call__ = notify


class GotifyNotifier:
    """Fire-and-forget Gotify push. Failures are logged, never raised."""

    def __init__(self, url: str, token: str, timeout: float = 1.0, logger: logging.Logger = None):
        self.url = url.rstrip('/') + '/message'
        self.token = token
        self.timeout = timeout
        self.logger = logger or module_logger

    def notify(self, priority: int, message: str) -> None:
        thread = threading.Thread(target=self.send, args=(priority, str(message)),
                                  name="gotify-notify", daemon=True)
        thread.start()

    __call__ = notify

    def send(self, priority: int, message: str) -> bool:
        try:
            response = requests.post(
                self.url,
                params={'token': self.token},
                json={'title': NOTIFICATION_TITLE, 'message': message, 'priority': priority},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            self.logger.error(f"Gotify notification failed: {e}")
            return False
        return True


def make_notifier(global_settings, logger=None):
    if not global_settings.gotify_url:
        return NullNotifier()
    return GotifyNotifier(global_settings.gotify_url, global_settings.gotify_token, logger=logger)
