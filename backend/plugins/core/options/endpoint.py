# backend/plugins/core/options/endpoint.py
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from structlog import get_logger
from utils.dependencies import get_request_context
from utils.exceptions import ForbiddenError, NotFoundError

from .models import (
    DefaultsResponse,
    NonceResponse,
    OptionsResponse,
    OptionValueResponse,
    RequestContext,
)
from .service import OptionsService, get_options_service

router = APIRouter()
logger = get_logger(__name__)

Service = Annotated[OptionsService, Depends(get_options_service)]


def _options_response(service: OptionsService, options: dict[str, Any]) -> OptionsResponse:
    return OptionsResponse(
        plugin=service.get_plugin_name(),
        version=service.get_version(),
        options=options,
    )


@router.get(
    "",
    response_model=OptionsResponse,
    summary="Get all options",
    description="Returns the plugin's options, from the in-process cache unless `fresh` is set.",
)
async def get_options(
    service: Service,
    fresh: bool = Query(False, description="Bypass the cache and reload from the database."),
):
    return _options_response(service, await service.get_options(fresh=fresh))


@router.get(
    "/defaults",
    response_model=DefaultsResponse,
    summary="Get declared defaults",
)
async def get_defaults(service: Service):
    return DefaultsResponse(defaults=service.get_defaults())


@router.get(
    "/nonce",
    response_model=NonceResponse,
    summary="Get the nonce for the options form",
    description="Returns the field name, action and value a form must submit to change options.",
)
async def get_nonce(service: Service):
    return NonceResponse(
        name=service.gate.nonce_name,
        action=service.gate.nonce_action,
        nonce=service.get_nonce(),
    )


@router.post(
    "",
    response_model=OptionsResponse,
    summary="Update options",
    description=(
        "Accepts a form or JSON object of option fields plus the nonce field. "
        "Submitted options are validated and merged over the current ones."
    ),
)
async def update_options(
    service: Service,
    context: Annotated[RequestContext, Depends(get_request_context)],
):
    if not service.check(context):
        raise ForbiddenError("Nonce verification failed.")

    submitted = {
        name: value
        for name, value in context.fields.items()
        if name != service.gate.nonce_name
    }
    changes = service.sanitize(submitted)

    options = await service.merge(changes)

    logger.info("Options saved from request", changed=sorted(changes))
    return _options_response(service, options)


@router.get(
    "/{option:path}",
    response_model=OptionValueResponse,
    summary="Get a single option",
    description="Returns the stored value, falling back to the declared default.",
)
async def get_option(option: str, service: Service):
    options = await service.get_options()
    if option in options:
        return OptionValueResponse(key=option, value=options[option])

    defaults = service.get_defaults()
    if option not in defaults:
        raise NotFoundError(f"Option '{option}' not found")
    return OptionValueResponse(key=option, value=defaults[option])
