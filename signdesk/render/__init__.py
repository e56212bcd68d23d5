# Render module
from signdesk.render.kinds import DecodeError, RenderError
from signdesk.render.renderer import Renderer, get_renderer
from signdesk.render.compositor import (
    Compositor,
    ExportError,
    TargetResolutionPolicy,
    get_compositor,
)

__all__ = [
    "DecodeError",
    "RenderError",
    "Renderer",
    "get_renderer",
    "Compositor",
    "ExportError",
    "TargetResolutionPolicy",
    "get_compositor",
]
