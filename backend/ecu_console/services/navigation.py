from ecu_console.config import settings
from ecu_console.models.navigation import Route

HOME_ROUTE = "dashboard"


class NavigationController:
    """Current route plus a bounded back-stack. The stack is never empty."""

    def __init__(self, history_limit: int | None = None):
        self._limit = settings.navigation_history_limit if history_limit is None else history_limit
        self._stack: list[Route] = [Route(name=HOME_ROUTE)]

    @property
    def current(self) -> Route:
        return self._stack[-1]

    @property
    def selected_module(self) -> str | None:
        return self.current.params.get("module_id")

    @property
    def stack(self) -> list[Route]:
        return list(self._stack)

    def navigate(self, route: str, params: dict | None = None) -> Route:
        entry = Route(name=route, params=params or {})
        if entry == self.current:
            return self.current
        self._stack.append(entry)
        if len(self._stack) > self._limit:
            del self._stack[0]
        return entry

    def back(self) -> Route:
        if len(self._stack) > 1:
            self._stack.pop()
        return self.current

    def reset(self):
        self._stack = [Route(name=HOME_ROUTE)]
