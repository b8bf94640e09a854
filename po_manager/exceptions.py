"""
exceptions.py — Error kinds raised by the PO service layer.

Every service-layer failure is a POManagerError subclass carrying a stable
`kind` string (used in batch results) and the HTTP status the API maps it to.

Called by: services/*, routers/purchase_orders.py, main.py
"""


class POManagerError(Exception):
    """Base class for all expected PO Manager failures."""

    kind = "error"
    status_code = 400

    def __init__(self, message: str = "", **context):
        self.message = message or self.__class__.__name__
        self.context = context
        super().__init__(self.message)


class NotFound(POManagerError):
    """A referenced PO, vendor or product does not exist."""

    kind = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id, message: str = ""):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message or f"{entity} {entity_id} not found")


class InvalidTransition(POManagerError):
    """A lifecycle rule was violated (e.g. approving a rejected PO)."""

    kind = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, target: str, message: str = ""):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot move from '{current}' to '{target}'")


class Unauthorized(POManagerError):
    """The permission gate denied the action."""

    kind = "unauthorized"
    status_code = 403

    def __init__(self, role: str | None, capability: str):
        self.role = role
        self.capability = capability
        super().__init__(f"Role '{role}' lacks permission '{capability}'")


class ValidationFailure(POManagerError):
    """Malformed input, such as an invalid phone or email on a vendor group."""

    kind = "validation_failure"
    status_code = 422


class DeliveryFailure(POManagerError):
    """The email delivery collaborator returned an error."""

    kind = "delivery_failure"
    status_code = 502


class RenderFailure(POManagerError):
    """Document generation raised on an unexpected data shape."""

    kind = "render_failure"
    status_code = 500
