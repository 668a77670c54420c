"""
ezla/models/common.py: Базовые типы домена e-ZLA.
"""

from pydantic import BaseModel


class EzlaBase(BaseModel):
    """Базовая Pydantic-модель для схем e-ZLA."""

    model_config = {"str_strip_whitespace": True}
