"""Jinja2 rendering helpers for email templates"""

import logging
import re
from typing import Any

from jinja2 import Environment, TemplateSyntaxError

from ...calculations.booking_calculations import format_date_display, to_date

logger = logging.getLogger(__name__)

# Names inside {{ }} that are never template variables
EXCLUDED_KEYWORDS = {
    "true",
    "false",
    "null",
    "none",
    "undefined",
    "length",
    "item",
    "element",
    "key",
    "value",
    "prop",
    "property",
    "loop",
    "and",
    "or",
    "not",
    "in",
    "is",
    "if",
    "else",
}

_VARIABLE_BLOCK = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")
_IDENTIFIER = re.compile(r"\b[a-zA-Z_][a-zA-Z0-9_]*\b")


def currency_filter(value: Any, symbol: str = "£") -> str:
    try:
        return f"{symbol}{float(value):.2f}"
    except (TypeError, ValueError):
        return f"{symbol}0.00"


def date_filter(value: Any, fmt: str = "display") -> str:
    parsed = to_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    if fmt == "display":
        return format_date_display(parsed)
    return parsed.strftime(fmt)


def _build_environment() -> Environment:
    env = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True)
    env.filters["currency"] = currency_filter
    env.filters["date"] = date_filter
    return env


template_env = _build_environment()


def render_template(content: str, data: dict) -> str:
    """Render template content; returns the content unchanged if rendering fails"""
    try:
        return template_env.from_string(content or "").render(**(data or {}))
    except Exception as e:
        logger.warning(f"⚠️ Template rendering failed, returning original template: {e}")
        return content


def extract_template_variables(content: str) -> list[str]:
    """Variable names used in ``{{ ... }}`` blocks, skipping filtered or called expressions"""
    variables: list[str] = []
    for match in _VARIABLE_BLOCK.finditer(content or ""):
        expression = match.group(1).strip()
        if "|" in expression or "(" in expression or ")" in expression:
            continue
        for name in _IDENTIFIER.findall(expression):
            if name.lower() not in EXCLUDED_KEYWORDS and name not in variables:
                variables.append(name)
    return variables


def validate_template_syntax(content: str) -> tuple[bool, list[str]]:
    errors = []
    try:
        template_env.parse(content or "")
    except TemplateSyntaxError as e:
        errors.append(f"Template syntax error: {e.message} (line {e.lineno})")

    if (content or "").count("{{") != (content or "").count("}}"):
        errors.append("Mismatched variable tags: {{ and }} counts differ")
    if (content or "").count("{%") != (content or "").count("%}"):
        errors.append("Mismatched block tags: {% and %} counts differ")

    return len(errors) == 0, errors


def template_warnings(content: str, subject: str = "") -> list[str]:
    warnings = []
    if content:
        if "<html" not in content and "<!DOCTYPE" not in content:
            warnings.append("Content doesn't appear to be valid HTML")
        if "<body" not in content:
            warnings.append("Content should include a <body> tag")
        if "viewport" not in content and "max-width" not in content:
            warnings.append("Consider adding responsive design elements for mobile compatibility")
    if subject and len(subject) > 200:
        warnings.append("Email subject is quite long (max 200 characters recommended)")
    return warnings
