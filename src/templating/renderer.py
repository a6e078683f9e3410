"""Jinja2-backed template renderer."""

from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from jinja2 import Template, TemplateError
from jinja2.sandbox import SandboxedEnvironment


class TemplateRenderError(Exception):
    """A template could not be compiled or rendered."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.status_code: int | None = None


class TemplateRenderer:
    """Renders template strings against a variable mapping.

    Templates come from backend responses (layout directives, fragment
    bodies), so rendering runs in Jinja2's sandbox. Undefined names
    render as empty strings. The whole mapping is also exposed as
    ``vars`` for keys that are not identifiers, e.g.
    ``{{ vars['device:type'] }}``.
    """

    def __init__(self, cache_size: int = 256) -> None:
        """Initialize the renderer.

        Args:
            cache_size: Number of compiled templates to keep.
        """
        self._env = SandboxedEnvironment(
            autoescape=False,
            keep_trailing_newline=True,
        )
        self._compile = lru_cache(maxsize=cache_size)(self._compile_uncached)

    def _compile_uncached(self, template: str) -> Template:
        return self._env.from_string(template)

    def render(self, template: str, variables: Mapping[str, Any]) -> str:
        """Render ``template`` with ``variables``.

        Args:
            template: Template source.
            variables: Template variables.

        Returns:
            Rendered text.

        Raises:
            TemplateRenderError: On syntax or rendering errors.
        """
        try:
            compiled = self._compile(template)
            return compiled.render({**variables, "vars": dict(variables)})
        except TemplateError as e:
            msg = f"Failed to render template: {e}"
            raise TemplateRenderError(msg) from e
