from .apps import RegistryGateway, error_status_code, IDENTITY_HEADER

__all__ = ["RegistryGateway", "error_status_code", "IDENTITY_HEADER"]
