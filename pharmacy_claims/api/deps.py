"""
FastAPI Dependencies
Services built in the application lifespan, handed to routes per request
Source: https://fastapi.tiangolo.com/tutorial/dependencies/
"""

from fastapi import Request

from pharmacy_claims.gateways.persistence_gateway import PersistenceGateway
from pharmacy_claims.services.claims_service import ClaimsService


def get_claims_service(request: Request) -> ClaimsService:
    """Claims service stored on ``app.state`` at startup."""
    return request.app.state.claims_service


def get_gateway(request: Request) -> PersistenceGateway:
    return request.app.state.gateway
