"""Mobile app API endpoints for clients (customers).

Clients authenticate with their identity document and receive a client
token, which is only accepted by the client routes below.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from inventory_api.api.deps import get_client_store, get_client_token_issuer, require
from inventory_api.schemas.auth import ClientAuthResponse, ClientLoginRequest, ClientResponse
from inventory_api.services.auth import ClientAuthService
from inventory_api.services.authorization import Principal
from inventory_api.services.errors import ClientNotFoundError
from inventory_api.services.stores import ClientStore
from inventory_api.services.tokens import TokenIssuer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mobile/client", tags=["mobile"])


def get_client_auth_service(
    clients: ClientStore = Depends(get_client_store),
    issuer: TokenIssuer = Depends(get_client_token_issuer),
) -> ClientAuthService:
    return ClientAuthService(clients, issuer)


@router.post("/login", name="mobile.login", response_model=ClientAuthResponse)
async def client_login(
    payload: ClientLoginRequest,
    service: ClientAuthService = Depends(get_client_auth_service),
    _: None = Depends(require("mobile.login")),
) -> ClientAuthResponse:
    """Log a client in by document type and number."""
    try:
        issued = await service.login(payload.document_type, payload.document_number)
    except ClientNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    return ClientAuthResponse(
        message="Login successful",
        client=ClientResponse.model_validate(issued.principal),
        token=issued.token,
        expires_in=issued.expires_in,
    )


@router.get("/me", name="mobile.me", response_model=ClientResponse)
async def get_current_client(
    principal: Principal = Depends(require("mobile.me")),
    clients: ClientStore = Depends(get_client_store),
) -> ClientResponse:
    """Return the profile of the authenticated client."""
    client = await clients.get_by_id(principal.id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return ClientResponse.model_validate(client)
