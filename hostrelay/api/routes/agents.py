"""Agent registration routes."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from hostrelay.api.deps import gateway_failure_response, get_services, host_field
from hostrelay.api.schemas import AgentRegisterRequest
from hostrelay.services.container import RelayServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agent", tags=["agents"])

DEFAULT_AGENT_DESCRIPTION = "No description provided."


@router.post("/register", status_code=201)
async def register_agent(
    body: AgentRegisterRequest,
    services: RelayServices = Depends(get_services),
):
    """Register a remote agent with the host, then store it.

    Name and description come from the host's reply when it has them.

    Raises:
        ConflictError: The url is already registered (409).
    """
    result = await services.gateway.register_agent(body.agent_url)
    if not result.ok:
        return gateway_failure_response("register agent", result.error)

    agent = await services.store.create_agent(
        url=body.agent_url,
        name=host_field(result.data, "name") or f"Agent at {body.agent_url}",
        description=host_field(result.data, "description") or DEFAULT_AGENT_DESCRIPTION,
        icon=host_field(result.data, "icon"),
    )
    await services.broadcaster.publish({"type": "agent_registered", "data": agent})
    logger.info("Agent %s registered (%s)", agent["id"], agent["url"])
    return JSONResponse(
        status_code=201,
        content={**agent, "message": "Agent registered successfully"},
    )


@router.post("/list")
async def list_agents(
    services: RelayServices = Depends(get_services),
) -> list[dict]:
    """All registered agents, newest first."""
    return await services.store.list_agents()
