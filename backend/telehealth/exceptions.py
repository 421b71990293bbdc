class TelehealthError(Exception):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, reason: str = "", details: dict = None):
        self.reason = reason or self.public_message
        self.details = details or {}
        super().__init__(self.reason)


class InvalidRequest(TelehealthError):
    """Missing or malformed parameter. The message names the field and is safe to return."""
    status_code = 400
    public_message = "Bad request"

    def __init__(self, reason: str, details: dict = None):
        super().__init__(reason, details)
        self.public_message = reason


class AccessDenied(TelehealthError):
    """Identity or role mismatch. The reason is logged; callers only ever see 'Access denied'."""
    status_code = 403
    public_message = "Access denied"


class NotFound(TelehealthError):
    status_code = 404
    public_message = "Not found"

    def __init__(self, reason: str, details: dict = None):
        super().__init__(reason, details)
        self.public_message = reason


class TelehealthNotConfigured(TelehealthError):
    status_code = 503
    public_message = "Telehealth not configured"


class InvalidRole(ValueError):
    def __init__(self, role):
        self.role = role
        super().__init__(f"Invalid role: {role}")
