"""
Registry Gateway - FastAPI surface over the role resolver.

Exposes identity status and access decisions to HTTP consumers and provides
``require_role`` for guarding routes of an application built on the gateway.
"""

import logging
from typing import Any, Callable, Dict, Union

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from web3 import Web3

from ..auth.roles import effective_role, guard_route, has_access, redirect_route, resolve_status, role_name
from ..contracts.connections import ContractConnectionManager
from ..engine.exceptions import (
    AuthorizationError,
    DeploymentError,
    LandRegistryError,
    NetworkMismatchError,
)
from ..schemas.identity import IdentityStatus, Role

logger = logging.getLogger(__name__)

IDENTITY_HEADER = "X-Identity-Address"


def error_status_code(exc: LandRegistryError) -> int:
    """HTTP status of a core error."""
    if isinstance(exc, NetworkMismatchError):
        return 409
    if isinstance(exc, DeploymentError):
        return 503
    if isinstance(exc, AuthorizationError):
        return 403
    return 502


def _checksum_or_422(address: str) -> str:
    if not Web3.is_address(address):
        raise HTTPException(status_code=422, detail=f"Invalid address: {address}")
    return Web3.to_checksum_address(address)


class RegistryGateway(FastAPI):
    """FastAPI server exposing identity status and role-based access checks."""

    def __init__(self, manager: ContractConnectionManager, **fastapi_kwargs):
        """Initialize the gateway.

        Args:
            manager: Connection manager already given a network handle and signer
            **fastapi_kwargs: FastAPI arguments (title, version, etc.)
        """
        self.manager = manager
        super().__init__(**fastapi_kwargs)

        self.add_exception_handler(LandRegistryError, self._handle_registry_error)
        self._setup_routes()

    async def resolve(self, address: str) -> IdentityStatus:
        bindings = await self.manager.ensure_initialized()
        return await resolve_status(bindings, address)

    def require_role(self, required: Union[Role, str]) -> Callable:
        """Build a dependency that admits only identities satisfying ``required``.

        The identity is read from the ``X-Identity-Address`` header. Denied
        requests get 403 with the route the identity should be sent to.

        Example:
            ```python
            app = RegistryGateway(manager)

            @app.get("/inspector/queue")
            async def queue(status = Depends(app.require_role(Role.INSPECTOR))):
                return {"inspector": status.address}
            ```
        """
        async def dependency(x_identity_address: str = Header(...)) -> IdentityStatus:
            address = _checksum_or_422(x_identity_address)
            status = await self.resolve(address)
            redirect = guard_route(status, required)
            if redirect is not None:
                raise HTTPException(
                    status_code=403,
                    detail={
                        "required_role": str(getattr(required, "value", required)),
                        "role": effective_role(status).value,
                        "redirect": redirect.value,
                    },
                )
            return status

        return dependency

    async def _handle_registry_error(self, request: Request, exc: LandRegistryError) -> JSONResponse:
        status_code = error_status_code(exc)
        logger.warning("%s %s failed with %s: %s", request.method, request.url.path, type(exc).__name__, exc)
        return JSONResponse(
            status_code=status_code,
            content={
                "error": type(exc).__name__,
                "message": str(exc),
                "details": {key: str(value) for key, value in exc.details.items()},
            },
        )

    def _setup_routes(self) -> None:
        @self.get("/health")
        async def health() -> Dict[str, Any]:
            return self.manager.status.model_dump(mode="json")

        @self.get("/identities/{address}")
        async def identity(address: str) -> Dict[str, Any]:
            status = await self.resolve(_checksum_or_422(address))
            return {
                "status": status.model_dump(mode="json"),
                "role": effective_role(status).value,
                "role_name": role_name(status),
                "landing_route": redirect_route(status).value,
            }

        @self.get("/identities/{address}/access/{role}")
        async def access(address: str, role: str) -> Dict[str, Any]:
            status = await self.resolve(_checksum_or_422(address))
            allowed = has_access(status, role.upper())
            return {
                "address": status.address,
                "required_role": role.upper(),
                "allowed": allowed,
                "redirect": None if allowed else redirect_route(status).value,
            }
