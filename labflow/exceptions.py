"""
Typed exceptions for the order result lifecycle.

Every error carries a machine-readable ``code``, the HTTP status the API
answers with, and a user-presentable message. Screens tell the cases apart
by ``code``; nothing here is meant to be caught and ignored.

    LifecycleError
    +-- ValidationError          bulk batch references something outside the order
    +-- StateViolation           illegal transition or failed guard
    +-- ApprovalDeclined         operator declined the critical-value confirmation
    +-- ConfirmationRequired     confirm attempted while alerts are unacknowledged
    +-- PermissionDenied         acting user lacks the trigger's permission
    +-- OrderNotFound
    +-- CatalogLookupError
"""


class LifecycleError(Exception):
    """Base exception for all lifecycle errors."""

    code: str = "LIFECYCLE_ERROR"
    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def extra(self) -> dict:
        """Structured data added to the API error body."""
        return {}


class ValidationError(LifecycleError):
    """A bulk result batch was rejected as a whole."""

    code: str = "VALIDATION_ERROR"
    status_code: int = 422

    def __init__(self, message: str, errors: list = None):
        self.errors = errors or []
        super().__init__(message)

    def extra(self) -> dict:
        return {"errors": self.errors}


class StateViolation(LifecycleError):
    """An order was asked to move somewhere it may not go."""

    code: str = "STATE_VIOLATION"
    status_code: int = 409

    def __init__(self, message: str, order_id: int = None, state: str = None, trigger: str = None):
        self.order_id = order_id
        self.state = state
        self.trigger = trigger
        super().__init__(message)

    def extra(self) -> dict:
        return {"order_id": self.order_id, "state": self.state, "trigger": self.trigger}


class ApprovalDeclined(LifecycleError):
    """The operator declined to confirm critical values. Saved results are kept."""

    code: str = "APPROVAL_DECLINED"
    status_code: int = 409

    def __init__(self, order_id: int, alert_count: int = 0):
        self.order_id = order_id
        self.alert_count = alert_count
        super().__init__(
            f"Approval of order {order_id} was declined; saved results were kept"
        )

    def extra(self) -> dict:
        return {"order_id": self.order_id, "alert_count": self.alert_count}


class ConfirmationRequired(LifecycleError):
    """Approval needs the operator to acknowledge the listed critical values."""

    code: str = "CONFIRMATION_REQUIRED"
    status_code: int = 409

    def __init__(self, order_id: int, alerts: list):
        self.order_id = order_id
        self.alerts = alerts
        super().__init__(
            f"Approval requires confirming {len(alerts)} critical value(s)"
        )

    def extra(self) -> dict:
        return {"order_id": self.order_id, "alerts": [a.to_dict() for a in self.alerts]}


class PermissionDenied(LifecycleError):
    """The acting user does not hold the permission the operation needs."""

    code: str = "PERMISSION_DENIED"
    status_code: int = 403

    def __init__(self, permission: str, user_id: str = None):
        self.permission = permission
        self.user_id = user_id
        super().__init__(f"Permission '{permission}' is required")

    def extra(self) -> dict:
        return {"permission": self.permission}


class OrderNotFound(LifecycleError):
    """No order with the given id."""

    code: str = "ORDER_NOT_FOUND"
    status_code: int = 404

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class CatalogLookupError(LifecycleError):
    """A catalog item referenced by an order or a request does not exist."""

    code: str = "CATALOG_LOOKUP_ERROR"
    status_code: int = 404

    def __init__(self, kind: str, item_id: int):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind.capitalize()} {item_id} not found in catalog")
