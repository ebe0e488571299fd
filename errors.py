"""
Error types raised by the services.

The HTTP layer turns any ShopError into a JSON body of the form
{"message": ...} using the error's status code.
"""


class ShopError(Exception):
    status_code = 500
    default_message = "Something went wrong!"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ShopError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(ShopError):
    status_code = 404
    default_message = "Not found"


class DuplicateOrderError(ShopError):
    status_code = 400
    default_message = "You have already ordered this product recently"


class RateLimitError(ShopError):
    status_code = 400
    default_message = "Too many orders from this location"


class UploadLimitError(ShopError):
    status_code = 400
    default_message = "Invalid upload"


class PersistenceError(ShopError):
    status_code = 500
    default_message = "Database error"


class UploadError(Exception):
    """Remote media upload failed; callers fall back to the staged local copy."""
