import logging
from typing import Awaitable, Callable, List

logger = logging.getLogger(__name__)

ConnectivityHandler = Callable[[bool], Awaitable[None]]


class ConnectivityChannel:
    """
    Online/offline signal fed by the platform adapter.

    Handlers only run on an actual transition, so repeated "online"
    signals from the platform do not fan out into repeated work.
    """

    def __init__(self, online: bool = True):
        self._online = online
        self._handlers: List[ConnectivityHandler] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def on_connectivity_change(self, handler: ConnectivityHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    async def publish(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for handler in list(self._handlers):
            await handler(online)
