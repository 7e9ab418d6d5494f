"""QR code service: the single owner of template and statistics state.

One instance is created per process by the MCP server. Tests create their own
instances (or call ``reset``) to get a clean state.
"""

import logging
import time
from typing import Any

from enhanced_qr_server.config import config
from enhanced_qr_server.errors import QRError, QRGenerationError, QRValidationError
from enhanced_qr_server.schemas import (
    BatchItemResult,
    BatchRequest,
    BatchResult,
    CalendarEvent,
    ContactRecord,
    ContentType,
    ContentValidationReport,
    DecodeResult,
    ErrorCorrectionLevel,
    GenerationConfig,
    GenerationResult,
    NetworkCredential,
    OptimizationResult,
    StatisticsSnapshot,
    StyleSpec,
    Template,
)
from enhanced_qr_server.tools import decoder, quality
from enhanced_qr_server.tools.generator import create_qr_code, ensure_supported_format
from enhanced_qr_server.tools.optimizer import optimize_content
from enhanced_qr_server.tools.payloads import build_event, build_vcard, build_wifi
from enhanced_qr_server.tools.statistics import StatisticsAccumulator
from enhanced_qr_server.tools.templates import TemplateRegistry, merge_overrides
from enhanced_qr_server.tools.validator import classify_content, validate_content, validate_for_type
from enhanced_qr_server.utils.file_utils import resolve_output_path

logger = logging.getLogger(__name__)


class QRCodeService:
    def __init__(
        self,
        output_dir: str | None = None,
        templates: TemplateRegistry | None = None,
        statistics: StatisticsAccumulator | None = None,
    ):
        self.output_dir = output_dir or config.output.default_directory
        self.templates = templates or TemplateRegistry()
        self.statistics = statistics or StatisticsAccumulator()

    def _generate(
        self,
        content: str,
        gen_config: GenerationConfig | None = None,
        style: StyleSpec | None = None,
        output_dir: str | None = None,
        filename: str | None = None,
        content_type: ContentType | None = None,
    ) -> GenerationResult:
        started = time.perf_counter()
        validate_content(content)
        gen_config = gen_config or GenerationConfig()
        ensure_supported_format(gen_config.format)

        output_path = resolve_output_path(output_dir or self.output_dir, gen_config.format, filename)
        try:
            result = create_qr_code(content, gen_config, output_path, style)
        except QRError:
            raise
        except Exception as e:
            logger.error("Failed to generate QR code: format=%s error=%s", gen_config.format, e)
            details: dict[str, Any] = {"content": content, "config": gen_config.model_dump()}
            if style is not None:
                details["style"] = style.model_dump()
            raise QRGenerationError(f"Failed to generate QR code: {e}", details) from e

        elapsed_ms = (time.perf_counter() - started) * 1000
        self.statistics.record(result, elapsed_ms, content_type or classify_content(content))
        logger.info("Generated %s QR code at %s in %.1fms", result.format, result.file_path, elapsed_ms)
        return result

    def generate_basic(self, content: str, gen_config: GenerationConfig | None = None) -> GenerationResult:
        return self._generate(content, gen_config)

    def generate_styled(
        self,
        content: str,
        style: StyleSpec | None = None,
        gen_config: GenerationConfig | None = None,
    ) -> GenerationResult:
        return self._generate(content, gen_config, style=style or StyleSpec())

    def generate_vcard(self, contact: ContactRecord, gen_config: GenerationConfig | None = None) -> GenerationResult:
        return self._generate(build_vcard(contact), gen_config, content_type=ContentType.VCARD)

    def generate_wifi(self, credential: NetworkCredential, gen_config: GenerationConfig | None = None) -> GenerationResult:
        return self._generate(build_wifi(credential), gen_config, content_type=ContentType.WIFI)

    def generate_event(self, event: CalendarEvent, gen_config: GenerationConfig | None = None) -> GenerationResult:
        return self._generate(build_event(event), gen_config, content_type=ContentType.EVENT)

    def generate_from_template(
        self,
        content: str,
        template_name: str,
        overrides: dict[str, Any] | None = None,
    ) -> GenerationResult:
        template = self.templates.get(template_name)
        style, gen_config = merge_overrides(template, overrides)
        result = self.generate_styled(content, style, gen_config)
        self.statistics.record_template(template_name)
        return result

    def generate_batch(self, request: BatchRequest) -> BatchResult:
        """Generate every item in order; a failing item never stops the rest."""
        if not request.items:
            raise QRValidationError("Batch items cannot be empty")
        max_size = config.output.max_batch_size
        if len(request.items) > max_size:
            raise QRValidationError(f"Batch size {len(request.items)} exceeds limit {max_size}")
        ensure_supported_format(request.format)
        output_dir = request.output_dir or self.output_dir

        gen_config = (request.base_config or GenerationConfig()).model_copy(update={"format": request.format})
        results = []
        for index, item in enumerate(request.items):
            try:
                result = self._generate(
                    item.content,
                    gen_config,
                    style=item.style,
                    output_dir=output_dir,
                    filename=item.filename,
                )
                results.append(BatchItemResult(index=index, success=True, file_path=result.file_path))
            except QRError as e:
                logger.warning("Batch item %d failed: %s", index, e.message)
                results.append(BatchItemResult(index=index, success=False, error=e.message))

        success_count = sum(1 for r in results if r.success)
        failed_count = len(results) - success_count
        logger.info("Batch finished: %d succeeded, %d failed", success_count, failed_count)
        return BatchResult(
            success=failed_count == 0,
            output_dir=output_dir,
            success_count=success_count,
            failed_count=failed_count,
            results=results,
        )

    def decode_image(self, image_path: str) -> DecodeResult:
        return decoder.decode(image_path)

    def analyze_quality(self, image_path: str) -> DecodeResult:
        img = decoder.open_image(image_path)
        result = decoder.decode_image(img)
        if not result.success:
            result.quality = quality.undecodable_report()
            return result

        dimensions, luminance = quality.measure_image(img)
        result.quality = quality.assess(dimensions, luminance, result.content or "")
        return result

    def list_templates(self) -> list[Template]:
        return self.templates.list()

    def add_template(self, template: Template) -> None:
        self.templates.register(template)

    def get_statistics(self) -> StatisticsSnapshot:
        return self.statistics.snapshot()

    def validate_content(
        self,
        content: str,
        content_type: ContentType = ContentType.TEXT,
        error_correction_level: ErrorCorrectionLevel = "M",
    ) -> ContentValidationReport:
        return validate_for_type(content, content_type, error_correction_level)

    def optimize_content(self, content: str) -> OptimizationResult:
        return optimize_content(content)

    def reset(self) -> None:
        self.statistics.reset()
        self.templates.reset()
