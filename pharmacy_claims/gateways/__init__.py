"""Storage gateways."""

from pharmacy_claims.gateways.persistence_gateway import PersistenceGateway

__all__ = ["PersistenceGateway"]
