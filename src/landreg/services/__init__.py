from .bases import RegistryService
from .users import UserService
from .inspector import InspectorService

__all__ = ["RegistryService", "UserService", "InspectorService"]
