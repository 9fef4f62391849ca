"""
Translation of domain errors into HTTP responses
"""

import logging

from fastapi import HTTPException, status

from bolao.core.errors import (
    BolaoError, ContestNotFound, ContestNotOpen, InsufficientCapacity, InvalidNumbers,
    InvalidStatusTransition, PaymentNotFound, ParticipationNotFound, GatewayUnavailable,
    GatewayError, LedgerIntegrityError, OperatorPurchaseNotAllowed
)

# Configure logging
logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 5


def to_http_exception(exc: BolaoError) -> HTTPException:
    """Map a domain error to the HTTPException the API returns for it."""
    if isinstance(exc, (ContestNotFound, PaymentNotFound, ParticipationNotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    
    if isinstance(exc, InsufficientCapacity):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "insufficient_capacity",
                "message": str(exc),
                "requested": exc.requested,
                "available": exc.available
            }
        )
    
    if isinstance(exc, (ContestNotOpen, InvalidNumbers, InvalidStatusTransition)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    
    if isinstance(exc, OperatorPurchaseNotAllowed):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    
    if isinstance(exc, LedgerIntegrityError):
        return HTTPException(status_code=status.HTTP_423_LOCKED, detail=str(exc))
    
    if isinstance(exc, GatewayUnavailable):
        retry_after = exc.retry_after or DEFAULT_RETRY_AFTER
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment gateway temporarily unavailable, try again later",
            headers={"Retry-After": str(retry_after)}
        )
    
    if isinstance(exc, GatewayError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    
    logger.error(f"Unmapped domain error: {exc!r}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
