from .renderer import (
    TemplateRenderer,
    default_renderer,
    interpolate,
    localize,
    missing_variables,
)

__all__ = [
    "TemplateRenderer",
    "default_renderer",
    "interpolate",
    "localize",
    "missing_variables",
]
