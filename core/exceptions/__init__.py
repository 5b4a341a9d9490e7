from core.exceptions.base import (
    CustomException,
    BadRequestException,
    UnauthorizedException,
    NotFoundException,
    ConflictException,
    WaitlistHoldExpiredException,
    PaymentGatewayException,
)

__all__ = [
    "CustomException",
    "BadRequestException",
    "UnauthorizedException",
    "NotFoundException",
    "ConflictException",
    "WaitlistHoldExpiredException",
    "PaymentGatewayException",
]
