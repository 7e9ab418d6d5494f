import asyncio
import json
import logging
import sys
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastmcp import FastMCP
from pydantic import BaseModel, ValidationError

from enhanced_qr_server import __version__
from enhanced_qr_server.config import config as settings
from enhanced_qr_server.errors import QRError, QRValidationError
from enhanced_qr_server.schemas import (
    BatchRequest,
    CalendarEvent,
    ContactRecord,
    ContentType,
    GenerationConfig,
    NetworkCredential,
    StyleSpec,
    Template,
)
from enhanced_qr_server.service import QRCodeService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger("enhanced_qr_server")


# Concurrency control
_request_semaphore = asyncio.Semaphore(settings.performance.max_concurrent_requests)
_pending_requests = 0
_max_queue_size = settings.performance.max_concurrent_requests * 3


# Initialize server
mcp = FastMCP(name="enhanced-qr-code-server", version=__version__)
service = QRCodeService()


@asynccontextmanager
async def _acquire_request_slot(request_name: str):
    """Acquire a request slot with queue size checks."""
    global _pending_requests

    if _pending_requests >= _max_queue_size:
        logger.warning(f"Queue full ({_pending_requests}). Rejecting {request_name}")
        raise RuntimeError(f"Server overloaded. Max queue size ({_max_queue_size}) exceeded.")

    _pending_requests += 1
    try:
        async with _request_semaphore:
            yield
    finally:
        _pending_requests -= 1


def _to_response(value: Any) -> Any:
    if isinstance(value, BaseModel):
        if hasattr(value, "summary"):
            return value.summary()
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_response(v) for v in value]
    return value


async def _run_tool(request_name: str, call: Callable[[], Any]) -> dict[str, Any]:
    """Run a core call inside a request slot and render errors as result envelopes."""
    try:
        async with _acquire_request_slot(request_name):
            response = _to_response(call())
            return response if isinstance(response, dict) else {"success": True, "items": response}
    except ValidationError as e:
        logger.warning("%s rejected invalid arguments: %s", request_name, e.error_count())
        return QRValidationError(
            f"Invalid arguments for {request_name}", {"errors": json.loads(e.json(include_url=False))}
        ).to_dict()
    except QRError as e:
        logger.warning("%s failed: %s", request_name, e.message)
        return e.to_dict()
    except RuntimeError as e:
        return {"success": False, "error": str(e), "error_type": "ServerOverloaded"}
    except Exception as e:
        logger.error(f"{request_name} error: {e}")
        return {"success": False, "error": str(e), "error_type": "UnknownError"}


def _config(values: dict[str, Any] | None) -> GenerationConfig:
    return GenerationConfig.model_validate(values or {})


@mcp.tool(description="Generate a basic QR code")
async def generate_qr_basic(
    content: str,
    size: int = settings.qr_generation.default_size,
    margin: int = settings.qr_generation.default_margin,
    error_correction_level: str = settings.qr_generation.default_error_correction,
    format: str = settings.qr_generation.default_format,
) -> dict[str, Any]:
    return await _run_tool(
        "generate_qr_basic",
        lambda: service.generate_basic(
            content,
            GenerationConfig(size=size, margin=margin, error_correction_level=error_correction_level, format=format),
        ),
    )


@mcp.tool(description="Generate a QR code with custom colours, logo, gradient, dot style and border")
async def generate_qr_styled(
    content: str,
    style: dict[str, Any] | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return await _run_tool(
        "generate_qr_styled",
        lambda: service.generate_styled(content, StyleSpec.model_validate(style or {}), _config(config)),
    )


@mcp.tool(description="Generate multiple QR codes in one call")
async def generate_qr_batch(
    items: list[dict[str, Any]],
    output_dir: str | None = None,
    format: Literal["png", "svg", "pdf"] = "png",
    base_config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return await _run_tool(
        "generate_qr_batch",
        lambda: service.generate_batch(
            BatchRequest(items=items, output_dir=output_dir, format=format, base_config=base_config)
        ),
    )


@mcp.tool(description="Generate a QR code containing vCard contact information")
async def generate_vcard_qr(
    first_name: str,
    last_name: str,
    organization: str | None = None,
    title: str | None = None,
    phone: str | None = None,
    email: str | None = None,
    website: str | None = None,
    address: dict[str, str] | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return await _run_tool(
        "generate_vcard_qr",
        lambda: service.generate_vcard(
            ContactRecord(
                first_name=first_name,
                last_name=last_name,
                organization=organization,
                title=title,
                phone=phone,
                email=email,
                website=website,
                address=address,
            ),
            _config(config),
        ),
    )


@mcp.tool(description="Generate a QR code for WiFi network credentials")
async def generate_wifi_qr(
    ssid: str,
    password: str | None = None,
    security: str = "WPA2",
    hidden: bool = False,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return await _run_tool(
        "generate_wifi_qr",
        lambda: service.generate_wifi(
            NetworkCredential(ssid=ssid, password=password, security=security, hidden=hidden),
            _config(config),
        ),
    )


@mcp.tool(description="Generate a QR code for a calendar event")
async def generate_event_qr(
    title: str,
    start_date: str,
    end_date: str | None = None,
    description: str | None = None,
    location: str | None = None,
    all_day: bool = False,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return await _run_tool(
        "generate_event_qr",
        lambda: service.generate_event(
            CalendarEvent(
                title=title,
                start_date=start_date,
                end_date=end_date,
                description=description,
                location=location,
                all_day=all_day,
            ),
            _config(config),
        ),
    )


@mcp.tool(description="Decode a QR code from an image file")
async def decode_qr_image(image_path: str, output_format: Literal["json", "text"] = "json") -> dict[str, Any]:
    def call():
        result = service.decode_image(image_path)
        if output_format == "text" and result.success:
            return {"success": True, "text": result.content}
        return result

    return await _run_tool("decode_qr_image", call)


@mcp.tool(description="Analyze QR code image quality and suggest improvements")
async def analyze_qr_quality(image_path: str) -> dict[str, Any]:
    return await _run_tool("analyze_qr_quality", lambda: service.analyze_quality(image_path))


@mcp.tool(description="Optimize content for QR code generation")
async def optimize_qr_content(content: str) -> dict[str, Any]:
    return await _run_tool("optimize_qr_content", lambda: service.optimize_content(content))


@mcp.tool(description="List available QR code templates")
async def list_qr_templates() -> dict[str, Any]:
    return await _run_tool("list_qr_templates", lambda: {"success": True, "templates": _to_response(service.list_templates())})


@mcp.tool(description="Register or replace a QR code template")
async def add_qr_template(
    name: str,
    description: str,
    category: str,
    style: dict[str, Any] | None = None,
    config: dict[str, Any] | None = None,
) -> dict[str, Any]:
    def call():
        template = Template(
            name=name,
            description=description,
            category=category,
            style=StyleSpec.model_validate(style or {}),
            config=_config(config),
        )
        service.add_template(template)
        return {"success": True, "template": _to_response(template)}

    return await _run_tool("add_qr_template", call)


@mcp.tool(description="Generate a QR code using a predefined template")
async def generate_qr_from_template(
    content: str,
    template_name: str,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return await _run_tool(
        "generate_qr_from_template",
        lambda: service.generate_from_template(content, template_name, overrides),
    )


@mcp.tool(description="Get usage statistics and performance metrics")
async def get_qr_statistics() -> dict[str, Any]:
    return await _run_tool("get_qr_statistics", service.get_statistics)


@mcp.tool(description="Validate content before QR code generation")
async def validate_qr_content(
    content: str,
    content_type: ContentType = ContentType.TEXT,
    error_correction_level: str = "M",
) -> dict[str, Any]:
    def call():
        level = GenerationConfig(error_correction_level=error_correction_level).error_correction_level
        return service.validate_content(content, content_type, level)

    return await _run_tool("validate_qr_content", call)


def main():
    """Main entry point for the FastMCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Enhanced QR Code FastMCP Server")
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport mode (stdio or http)",
    )
    parser.add_argument("--host", default="0.0.0.0", help="HTTP host")
    parser.add_argument("--port", type=int, default=9001, help="HTTP port")

    args = parser.parse_args()

    if args.transport == "http":
        logger.info(f"Starting Enhanced QR Code FastMCP Server on HTTP at {args.host}:{args.port}")
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        logger.info("Starting Enhanced QR Code FastMCP Server on stdio")
        mcp.run()


if __name__ == "__main__":
    main()
