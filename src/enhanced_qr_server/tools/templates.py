import json
import logging
import threading
from typing import Any

from pydantic import ValidationError

from enhanced_qr_server.errors import QRValidationError, TemplateNotFoundError
from enhanced_qr_server.schemas import GenerationConfig, StyleSpec, Template

logger = logging.getLogger(__name__)


def default_templates() -> list[Template]:
    return [
        Template(
            name="business",
            description="Professional business card style",
            category="business",
            style=StyleSpec(
                foreground_color="#1a365d",
                background_color="#ffffff",
                corner_radius=5,
                dot_style="square",
                border_width=2,
                border_color="#1a365d",
            ),
            config=GenerationConfig(size=300, margin=2, error_correction_level="M", format="png"),
        ),
        Template(
            name="social",
            description="Colorful social media style",
            category="social",
            style=StyleSpec(
                foreground_color="#e53e3e",
                background_color="#fff5f5",
                corner_radius=15,
                dot_style="round",
                gradient_start="#e53e3e",
                gradient_end="#c53030",
            ),
            config=GenerationConfig(size=400, margin=1, error_correction_level="M", format="png"),
        ),
    ]


def _field_lookup(model: type[StyleSpec] | type[GenerationConfig]) -> dict[str, str]:
    lookup = {}
    for name, info in model.model_fields.items():
        lookup[name] = name
        if info.alias:
            lookup[info.alias] = name
    return lookup


_STYLE_FIELDS = _field_lookup(StyleSpec)
_CONFIG_FIELDS = _field_lookup(GenerationConfig)


def merge_overrides(template: Template, overrides: dict[str, Any] | None) -> tuple[StyleSpec, GenerationConfig]:
    """Shallow-merge flat overrides over a template's style and config.

    Keys naming a style field update the style, keys naming a config field
    update the config; the override wins per field.
    """
    style_updates: dict[str, Any] = {}
    config_updates: dict[str, Any] = {}
    unknown = []

    for key, value in (overrides or {}).items():
        if key in _STYLE_FIELDS:
            style_updates[_STYLE_FIELDS[key]] = value
        elif key in _CONFIG_FIELDS:
            config_updates[_CONFIG_FIELDS[key]] = value
        else:
            unknown.append(key)

    if unknown:
        raise QRValidationError(f"Unknown template override(s): {', '.join(sorted(unknown))}", {"overrides": overrides})

    try:
        style = StyleSpec.model_validate({**template.style.model_dump(), **style_updates})
        config = GenerationConfig.model_validate({**template.config.model_dump(), **config_updates})
    except ValidationError as e:
        errors = json.loads(e.json(include_url=False))
        raise QRValidationError("Invalid template overrides", {"overrides": overrides, "errors": errors}) from e

    return style, config


class TemplateRegistry:
    """In-memory mapping of template name to template, seeded with built-ins."""

    def __init__(self, templates: list[Template] | None = None):
        self._lock = threading.Lock()
        self._templates: dict[str, Template] = {}
        for template in default_templates() if templates is None else templates:
            self.register(template)

    def register(self, template: Template) -> None:
        with self._lock:
            replaced = template.name in self._templates
            self._templates[template.name] = template
        logger.info("%s template '%s'", "Replaced" if replaced else "Registered", template.name)

    def get(self, name: str) -> Template:
        with self._lock:
            template = self._templates.get(name)
        if template is None:
            raise TemplateNotFoundError(f"Template not found: {name}", {"template_name": name})
        return template

    def list(self) -> list[Template]:
        with self._lock:
            return list(self._templates.values())

    def reset(self) -> None:
        with self._lock:
            self._templates = {t.name: t for t in default_templates()}
