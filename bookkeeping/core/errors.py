"""Report delivery errors."""


class ReportDeliveryError(Exception):
    """Base error for monthly report delivery."""


class TransportFault(ReportDeliveryError):
    """Sending failed or the email service returned a negative result."""


class InvalidInput(ReportDeliveryError):
    """Report fields, attachment or queue payload are missing or malformed."""


class DeliveryTimeout(ReportDeliveryError):
    """Delivery attempt exceeded its execution budget."""


class ReportNotFound(ReportDeliveryError):
    """Payload references a report that does not exist."""


class DeliveryInProgress(ReportDeliveryError):
    """Another attempt for the same report is already running."""
