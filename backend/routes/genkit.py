"""Genkit-style flow endpoint: one POST route, flow named by the x-genkit-client header."""

import json
import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse

from procmatch.config import get_settings
from procmatch.dispatcher import FLOW_HEADER, FlowDispatcher, parse_flow_input, resolve_flow
from procmatch.errors import DispatchError, InvalidRequestError

logger = logging.getLogger(__name__)
router = APIRouter()


@lru_cache
def get_dispatcher() -> FlowDispatcher:
    return FlowDispatcher.from_settings(get_settings())


@router.post("/genkit")
@router.post("/genkit/{flow_path:path}")
async def run_flow(request: Request, dispatcher: FlowDispatcher = Depends(get_dispatcher)):
    """Run the flow named in the x-genkit-client header with the JSON body as input."""
    try:
        flow = resolve_flow(request.headers.get(FLOW_HEADER))
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidRequestError(f"Request body is not valid JSON: {e}") from e
        payload = parse_flow_input(flow, body)
    except DispatchError as e:
        logger.info("Rejected flow request (%d): %s", e.status_code, e)
        return PlainTextResponse(str(e), status_code=e.status_code)

    try:
        result = await dispatcher.run(flow, payload)
    except Exception as e:
        logger.exception("Flow %s failed", flow.value)
        return PlainTextResponse(str(e) or "An unexpected error occurred", status_code=500)

    return Response(content=result.to_json(), status_code=200, media_type="application/json")
