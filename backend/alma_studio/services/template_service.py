# backend/alma_studio/services/template_service.py
"""
Template rendering for client emails.

Templates live in ``alma_studio/templates`` and extend
``email/base.html``; every render receives the common brand context.
"""

from datetime import date, datetime
from decimal import Decimal
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from ..core.constants import BRAND_NAME
from ..core.exceptions import ServiceException

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


def currency(value: Union[Decimal, float, int, None]) -> str:
    """Format an amount as currency."""
    return f"${float(value or 0):,.2f}"


def format_date(value: Union[date, datetime, str], format_str: str = "%d/%m/%Y") -> str:
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value  # Already formatted
    return value.strftime(format_str)


class TemplateService:
    """Jinja2 environment with the studio's filters and common context."""

    def __init__(self, template_dir: Optional[Path] = None):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["currency"] = currency
        self.env.filters["format_date"] = format_date

    def get_common_context(self) -> Dict[str, Any]:
        return {
            "brand_name": BRAND_NAME,
            "current_year": datetime.now().year,
        }

    def render_template(self, template_name: str, context: Optional[Dict[str, Any]] = None, **kwargs: Any) -> str:
        """
        Render a template with the common context merged in.

        Raises:
            ServiceException: If the template does not exist
        """
        full_context = self.get_common_context()
        full_context.update(context or {})
        full_context.update(kwargs)
        try:
            return self.env.get_template(template_name).render(**full_context)
        except TemplateNotFound as e:
            logger.error(f"Template not found: {template_name}")
            raise ServiceException(f"Email template error: {str(e)}")
