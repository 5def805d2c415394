"""Errors raised by the pricing engine and its input boundary."""


class PricingError(ValueError):
    """Base class for every pricing failure. Never carries a partial result."""

    def __init__(self, message, field=None, payload=None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv["message"] = self.message
        rv["status"] = "error"
        if self.field:
            rv["field"] = self.field
        return rv


class InvalidReferenceError(PricingError):
    """A required related entity (zone, product, employee...) is absent."""

    def __init__(self, entity, field=None, reference_id=None):
        message = f"Missing {entity}"
        if reference_id is not None:
            message += f" (id={reference_id})"
        message += ": pricing needs its numeric fields"
        super().__init__(message, field=field or entity,
                         payload={"entity": entity, "reference_id": reference_id})


class OutOfRangeConfigurationError(PricingError):
    """Margin or retention percentage outside its documented bounds."""

    def __init__(self, field, value, low, high, message=None):
        if message is None:
            message = f"{field} must be between {low:g} and {high:g}, got {value:g}"
        super().__init__(message, field=field,
                         payload={"value": value, "min": low, "max": high})


class AllocationMismatchError(PricingError):
    """Manual transport allocations don't add up to the zone's transport_count."""

    def __init__(self, zone_label, expected, actual):
        message = (
            f"Transport allocations for zone {zone_label} sum to {actual:g}, "
            f"expected transport_count {expected:g}"
        )
        super().__init__(message, field="transport_allocations",
                         payload={"zone": zone_label, "expected": expected, "actual": actual})
