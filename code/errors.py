from typing import Any, Dict, Optional


class ReplayError(Exception):
    """Terminal failure of a single replay request."""

    def __init__(self, message: str, route_id: Any = None):
        super().__init__(message)
        self.message = message
        self.route_id = route_id

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Optional[Any]]:
        return {"kind": self.kind, "route_id": self.route_id, "message": self.message}


class InvalidPayload(ReplayError):
    pass


class RouteNotFound(ReplayError):
    pass


class MalformedRoute(ReplayError):
    pass


class AmbiguousRoute(ReplayError):
    pass


class RouteStoreError(ReplayError):
    pass
