"""Domain errors raised by the pricing engine and the quote issuer"""
from typing import Optional


class PricingError(Exception):
    status_code: int = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(PricingError):
    status_code = 404

    def __init__(self, resource_name: str = "Resource", resource_id: Optional[object] = None):
        if resource_id is not None:
            detail = f"{resource_name} with id {resource_id} not found"
        else:
            detail = f"{resource_name} not found"
        super().__init__(detail)
        self.resource_name = resource_name
        self.resource_id = resource_id


class InvalidRequest(PricingError):
    status_code = 422


class Expired(PricingError):
    status_code = 410


class AlreadyUsed(PricingError):
    status_code = 409


class NoPricingAvailable(PricingError):
    status_code = 422

    def __init__(self, detail: str = "No pricing available for the requested route"):
        super().__init__(detail)


class ConfigurationError(PricingError):
    """Stored pricing configuration failed validation"""
    status_code = 500
