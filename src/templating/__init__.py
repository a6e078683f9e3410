"""Template rendering for layout URLs and page content."""

from src.templating.renderer import TemplateRenderError, TemplateRenderer


__all__ = ["TemplateRenderError", "TemplateRenderer"]
