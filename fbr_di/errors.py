class FBRError(Exception):
    """Base class for every error raised by the invoicing core"""


class ValidationError(FBRError):
    """Input rejected locally, before any call to the gateway"""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self):
        data = {'error': self.message}
        if self.field:
            data['field'] = self.field
        return data


class PayloadError(ValidationError):
    pass


class InvalidTransition(ValidationError):
    pass


class InvoiceLocked(ValidationError):
    pass


class NotFoundError(FBRError):
    pass


class GatewayConfigError(FBRError):
    pass
