"""
ezla.models: Модели данных домена e-ZLA.

Реэкспорт основных классов для удобства:
    from ezla.models import CaseRead, PaymentStatus
"""

from ezla.models.enums import (  # noqa: F401
    BookingIntent,
    CaseStatus,
    ChannelKind,
    DisplayState,
    PaymentMethod,
    PaymentStatus,
)
from ezla.models.case import CaseCreate, CaseRead, CaseRef, CaseStatusRead  # noqa: F401
from ezla.models.profile import ProfileCreate, ProfileRead  # noqa: F401
from ezla.models.user import UserRead, UserRegister  # noqa: F401
