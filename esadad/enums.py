from django.db import models

SUCCESS_CODE = "000"
EXCEPTION_CODE = "EXCEPTION"
REDACTED = "[ENCRYPTED]"


class TxnStatus(models.TextChoices):
    INITIATED = "initiated", "Initiated"
    REQUESTED = "requested", "Requested"
    CONFIRMED = "confirmed", "Confirmed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"


class PaymentStatus(models.TextChoices):
    NEW = "PmtNew", "New"
    CANCEL = "PmtCanc", "Cancel"


class LogLevel(models.TextChoices):
    INFO = "info", "Info"
    ERROR = "error", "Error"


class Service(models.TextChoices):
    AUTHENTICATION = "authentication", "Authentication"
    PAYMENT_INITIATION = "payment_initiation", "Payment initiation"
    PAYMENT_REQUEST = "payment_request", "Payment request"
    PAYMENT_CONFIRM = "payment_confirm", "Payment confirmation"


# Internal subsystem names that also appear in GatewayLog.service
TOKEN_CACHE = "token_cache"
