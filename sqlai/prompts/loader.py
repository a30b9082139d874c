"""Prompt template loading and rendering."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


@dataclass(frozen=True)
class PromptTemplate:
    """Template body and its YAML front matter."""

    content: str
    metadata: dict[str, Any]


def _split_front_matter(source: str) -> tuple[dict[str, Any], str]:
    if source.startswith("---"):
        parts = source.split("---", 2)
        if len(parts) == 3:
            return yaml.safe_load(parts[1]) or {}, parts[2].lstrip()
    return {}, source


class FrontMatterLoader(FileSystemLoader):
    """Jinja2 loader that strips YAML front matter."""

    def get_source(self, environment: Environment, template: str):  # type: ignore[override]
        source, filename, uptodate = super().get_source(environment, template)
        _, body = _split_front_matter(source)
        return body, filename, uptodate


class PromptLoader:
    """Load and render the Markdown prompt templates shipped with the package."""

    def __init__(self, templates_dir: str | Path | None = None) -> None:
        self.templates_dir = Path(templates_dir) if templates_dir else TEMPLATES_DIR
        self.cache: dict[str, PromptTemplate] = {}
        self._env = Environment(
            loader=FrontMatterLoader(str(self.templates_dir)),
            undefined=StrictUndefined,
            autoescape=False,
        )

    def load(self, name: str) -> str:
        """Return a template body without front matter."""
        return self._entry(name).content

    def render(self, name: str, **variables: Any) -> str:
        """
        Render a template with Jinja2.

        Example:
            prompt = loader.render("sql_generator.md", schema_text=text, upload_prefix="upload_")
        """
        try:
            template = self._env.get_template(name)
        except TemplateNotFound as exc:
            raise FileNotFoundError(f"Prompt not found: {self.templates_dir / name}") from exc
        return template.render(**variables)

    def get_metadata(self, name: str) -> dict[str, Any]:
        """Return the front matter of a template."""
        return self._entry(name).metadata

    def _entry(self, name: str) -> PromptTemplate:
        if name not in self.cache:
            file_path = self.templates_dir / name
            if not file_path.exists():
                raise FileNotFoundError(f"Prompt not found: {file_path}")
            metadata, content = _split_front_matter(file_path.read_text(encoding="utf-8"))
            self.cache[name] = PromptTemplate(content=content, metadata=metadata)
        return self.cache[name]
