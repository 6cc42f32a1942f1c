#!/usr/bin/env python3
"""
MCP Server for the SES Hospedajes registration service.
Exposes guest validation, XML preview and catalog tools via Model Context Protocol.

Modes:
  - stdio (default): python mcp_server.py
  - SSE (remote):    python mcp_server.py --sse --port 8001
                     or: uvicorn mcp_server:app --host 0.0.0.0 --port 8001
"""
import json
import argparse

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent
from pydantic import ValidationError

from ses_hospedajes.config import get_settings
from ses_hospedajes.models.schemas import CommunicationBatchRequest, CommunicationType, ContractMetadata
from ses_hospedajes.services import catalog
from ses_hospedajes.services.normalizer import normalize_rows
from ses_hospedajes.services.rules_engine import validate_guests
from ses_hospedajes.services.xml_builder import build_communication_xml

server = Server("ses-hospedajes")

ROWS_SCHEMA = {
    "type": "array",
    "items": {"type": "object", "additionalProperties": {"type": "string"}},
    "description": "Spreadsheet rows keyed by column label (e.g. 'Nombre Completo (Nombre)', 'Número del documento')"
}


def _text(payload) -> list:
    return [TextContent(type="text", text=json.dumps(payload, ensure_ascii=False, indent=2))]


@server.list_tools()
async def list_tools():
    """List available MCP tools."""
    return [
        Tool(
            name="validate_guests",
            description="Normalize spreadsheet rows into guest records and validate them. Returns errors, warnings and the guests that would be sent.",
            inputSchema={
                "type": "object",
                "properties": {"rows": ROWS_SCHEMA},
                "required": ["rows"]
            }
        ),
        Tool(
            name="build_communication_xml",
            description="Build the communication XML for the valid guests among the given rows, as it would be sent to SES.Hospedajes.",
            inputSchema={
                "type": "object",
                "properties": {
                    "rows": ROWS_SCHEMA,
                    "communication_type": {
                        "type": "string",
                        "description": "parte_viajeros (PV) or reserva (RH)",
                        "enum": ["parte_viajeros", "reserva"]
                    },
                    "establishment_code": {
                        "type": "string",
                        "description": "Establishment code; defaults to SES_ESTABLISHMENT_CODE"
                    },
                    "contract": {
                        "type": "object",
                        "description": "Contract metadata: reference, signatureDate, entryDate, exitDate, occupantCount, paymentMethod, paymentDate"
                    }
                },
                "required": ["rows"]
            }
        ),
        Tool(
            name="get_codelist",
            description="Get a codelist by name (DOCUMENT_TYPES, COUNTRIES, PROVINCES, PAYMENT_METHODS)",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Codelist name"
                    }
                },
                "required": ["name"]
            }
        ),
        Tool(
            name="list_available_codelists",
            description="List all available codelist names",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
        Tool(
            name="normalize_country",
            description="Map a country name or ISO alpha-2/alpha-3 code to the alpha-3 code SES expects",
            inputSchema={
                "type": "object",
                "properties": {"value": {"type": "string"}},
                "required": ["value"]
            }
        ),
        Tool(
            name="normalize_document_type",
            description="Map a document type label or legacy letter (D, P, C, N, X, I) to its numeric SES code",
            inputSchema={
                "type": "object",
                "properties": {"value": {"type": "string"}},
                "required": ["value"]
            }
        )
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict):
    """Handle tool invocations."""

    if name == "validate_guests":
        result = validate_guests(normalize_rows(arguments.get("rows", [])))
        return _text(result.model_dump(mode="json"))

    elif name == "build_communication_xml":
        result = validate_guests(normalize_rows(arguments.get("rows", [])))
        if not result.validGuests:
            return _text({"error": "No hay registros válidos para enviar",
                          "errors": [e.model_dump(mode="json") for e in result.errors]})
        try:
            request = CommunicationBatchRequest(
                establishmentCode=arguments.get("establishment_code") or get_settings().establishment_code,
                communicationType=CommunicationType(arguments.get("communication_type", "parte_viajeros")),
                guests=result.validGuests,
                contract=ContractMetadata(**(arguments.get("contract") or {})),
            )
        except (ValueError, ValidationError) as e:
            return _text({"error": f"Invalid arguments: {e}"})
        xml = build_communication_xml(request)
        return [TextContent(type="text", text=xml.decode("utf-8"))]

    elif name == "get_codelist":
        codelist_name = arguments.get("name", "")
        lists = catalog.codelists()
        if codelist_name not in lists:
            return _text({"error": f"Codelist '{codelist_name}' not found"})
        return _text(lists[codelist_name])

    elif name == "list_available_codelists":
        return _text(sorted(catalog.codelists().keys()))

    elif name == "normalize_country":
        value = arguments.get("value", "")
        code = catalog.normalize_country(value)
        return _text({"input": value, "code": code, "known": catalog.is_known_country(code)})

    elif name == "normalize_document_type":
        value = arguments.get("value", "")
        code = catalog.normalize_document_type(value)
        return _text({"input": value, "code": code, "label": catalog.DOCUMENT_TYPES.get(code)})

    return _text({"error": f"Unknown tool: {name}"})


# =============================================================================
# SSE Transport (for remote access)
# =============================================================================

def create_sse_app():
    """Create Starlette app with SSE transport for remote MCP access."""
    from mcp.server.sse import SseServerTransport
    from starlette.applications import Starlette
    from starlette.routing import Route, Mount
    from starlette.responses import JSONResponse

    sse = SseServerTransport("/messages/")

    async def handle_sse(request):
        async with sse.connect_sse(request.scope, request.receive, request._send) as streams:
            await server.run(streams[0], streams[1], server.create_initialization_options())

    async def health(request):
        return JSONResponse({"status": "ok", "server": "ses-hospedajes", "mode": "sse"})

    return Starlette(
        routes=[
            Route("/", endpoint=health),
            Route("/sse", endpoint=handle_sse),
            Mount("/messages/", app=sse.handle_post_message),
        ]
    )


# ASGI app for uvicorn
app = create_sse_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

async def run_stdio():
    """Run MCP server in stdio mode (local)."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def run_sse(host: str, port: int):
    """Run MCP server in SSE mode (remote)."""
    import uvicorn
    config = uvicorn.Config(app, host=host, port=port, log_level="info")
    srv = uvicorn.Server(config)
    await srv.serve()


def main():
    parser = argparse.ArgumentParser(description="MCP SES Hospedajes Server")
    parser.add_argument("--sse", action="store_true", help="Run in SSE mode (remote access)")
    parser.add_argument("--host", default="0.0.0.0", help="Host for SSE mode (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8001, help="Port for SSE mode (default: 8001)")
    args = parser.parse_args()

    import asyncio

    if args.sse:
        print(f"Starting MCP server in SSE mode on {args.host}:{args.port}")
        print(f"  - Health check: http://{args.host}:{args.port}/")
        print(f"  - SSE endpoint: http://{args.host}:{args.port}/sse")
        asyncio.run(run_sse(args.host, args.port))
    else:
        asyncio.run(run_stdio())


if __name__ == "__main__":
    main()
