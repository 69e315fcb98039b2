from functools import lru_cache
from typing import Any

from jinja2 import Environment, PackageLoader, select_autoescape


def _blank(value: Any) -> bool:
    return value is None or str(value) == ""


@lru_cache(maxsize=1)
def get_environment() -> Environment:
    """The shared Jinja environment for gridcrud's own templates."""
    env = Environment(
        loader=PackageLoader("gridcrud", "templates"),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.tests["blank"] = _blank
    return env


def render_template(name: str, **context: Any) -> str:
    return get_environment().get_template(name).render(**context)


def get_macro(template: str, name: str):
    """Look up a macro defined in one of the templates."""
    return getattr(get_environment().get_template(template).module, name)
