"""
Service interfaces for dependency inversion.
External collaborators (payment gateway, identity provider) are reached
only through these, so tests and deployments can swap implementations.
"""

from .identity import Actor, IdentityProvider
from .payment_gateway import ChargeResult, PaymentGateway
from .simulated_gateway import SimulatedPaymentGateway

__all__ = ['Actor', 'IdentityProvider', 'ChargeResult', 'PaymentGateway', 'SimulatedPaymentGateway']
