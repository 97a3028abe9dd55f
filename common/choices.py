"""Shared enumerations and choices used across apps."""

from django.db import models


class ActiveInactive(models.TextChoices):
    ACTIVE = "active", "Active"
    INACTIVE = "inactive", "Inactive"


class ItemKind(models.TextChoices):
    """Physical goods go through separation and delivery; services do not."""

    PRODUCT = "product", "Product"
    SERVICE = "service", "Service"


class PricingType(models.TextChoices):
    FIXED = "fixed", "Fixed price"
    QUOTE = "quote", "Quote only"


class SalesChannel(models.TextChoices):
    ONLINE = "online", "Online"
    IN_PERSON = "in_person", "In person"


class OrderStatus(models.TextChoices):
    """Coarse sale status shared with in-person sales."""

    OPEN = "open", "Open"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class OnlineOrderStatus(models.TextChoices):
    """Fine-grained lifecycle of an online order."""

    PENDING_PAYMENT = "pending_payment", "Pending payment"
    PAYMENT_CONFIRMED = "payment_confirmed", "Payment confirmed"
    PROCESSING = "processing", "Processing"
    SHIPPED = "shipped", "Shipped"
    DELIVERED = "delivered", "Delivered"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    RETURN_REQUESTED = "return_requested", "Return requested"


class FulfillmentStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    IN_PROGRESS = "in_progress", "In progress"
    COMPLETED = "completed", "Completed"
    NOT_REQUIRED = "not_required", "Not required"
    CANCELLED = "cancelled", "Cancelled"


class InvoiceStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"


class ReceivableStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"


class PaymentMethod(models.TextChoices):
    PIX = "pix", "PIX"
    BOLETO = "boleto", "Boleto"
    CARD = "card", "Card"
    CASH = "cash", "Cash"


class PaymentStatus(models.TextChoices):
    CONFIRMED = "confirmed", "Confirmed"
    REFUNDED = "refunded", "Refunded"


class CommissionStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    CANCELLED = "cancelled", "Cancelled"


class MovementType(models.TextChoices):
    SALE = "sale", "Sale"
    RETURN = "return", "Return"
    INBOUND = "in", "Inbound"
    ADJUST = "adjust", "Adjust"


class AppointmentStatus(models.TextChoices):
    SCHEDULED = "scheduled", "Scheduled"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
