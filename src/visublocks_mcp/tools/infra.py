"""Runtime configuration tool — 1 tool on a FastMCP sub-server."""

from __future__ import annotations

from typing import Annotated

from fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import Field

from ..config import MODEL_PRESETS, get_config, update_config
from ..errors import make_tool_error
from ..tracing import trace
from ..types import ModelPreset, ThinkingLevel

infra_server = FastMCP("infra")
_SENSITIVE_CONFIG_FIELDS = {"gemini_api_key"}


def _active_preset() -> str | None:
    cfg = get_config()
    for name, preset in MODEL_PRESETS.items():
        if cfg.default_model == preset["default_model"] and cfg.flash_model == preset["flash_model"]:
            return name
    return None


@infra_server.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    )
)
@trace(name="infra_configure", span_type="TOOL")
async def infra_configure(
    preset: Annotated[ModelPreset | None, Field(
        description='Model preset: "best" (3.1 Pro + 3 Flash) or "budget" (3 Flash only)',
    )] = None,
    model: Annotated[str | None, Field(description="Project model ID (takes precedence over preset)")] = None,
    thinking_level: ThinkingLevel | None = None,
    temperature: Annotated[float | None, Field(ge=0.0, le=2.0, description="Sampling temperature")] = None,
    seconds_per_block: Annotated[int | None, Field(ge=1, le=30, description="Default duration per block")] = None,
    dev_fallback: Annotated[bool | None, Field(description="Serve the fallback project on failures")] = None,
) -> dict:
    """Show or change runtime settings; changes apply to later calls.

    Returns:
        Dict with current_config (API key redacted), active_preset and
        available_presets.
    """
    try:
        overrides: dict[str, object] = {}
        if preset is not None:
            if preset not in MODEL_PRESETS:
                valid = ", ".join(sorted(MODEL_PRESETS))
                raise ValueError(f"Unknown preset '{preset}'. Available: {valid}")
            overrides["default_model"] = MODEL_PRESETS[preset]["default_model"]
            overrides["flash_model"] = MODEL_PRESETS[preset]["flash_model"]
        if model is not None:
            overrides["default_model"] = model
        overrides.update(
            default_thinking_level=thinking_level,
            default_temperature=temperature,
            seconds_per_block=seconds_per_block,
            dev_fallback=dev_fallback,
        )
        cfg = update_config(**overrides)
        return {
            "current_config": cfg.model_dump(exclude=_SENSITIVE_CONFIG_FIELDS),
            "active_preset": _active_preset(),
            "available_presets": {k: v["label"] for k, v in MODEL_PRESETS.items()},
        }
    except Exception as exc:
        return make_tool_error(exc)
