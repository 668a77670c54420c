"""
ezla/models/payment.py: Модели платёжного потока Autopay.

    • PaymentInitRequest / PaymentInitResponse: старт оплаты
    • PaymentNotification: входящее ITN-уведомление (не сохраняется)
    • ReturnVerifyRequest / ReturnVerification: проверка return URL
"""

from uuid import UUID

from pydantic import ConfigDict, Field

from ezla.models.common import EzlaBase
from ezla.models.enums import CaseStatus, DisplayState, PaymentMethod, PaymentStatus


class PaymentInitRequest(EzlaBase):
    case_id: UUID
    payment_method: PaymentMethod = PaymentMethod.TRANSFER


class PaymentInitResponse(EzlaBase):
    payment_url: str
    case_number: str


class PaymentNotification(EzlaBase):
    """ITN-уведомление шлюза. Поля подписи: все обязательные."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    service_id: str = Field(..., alias="serviceID", min_length=1)
    order_id: str = Field(..., alias="orderID", min_length=1)
    remote_id: str = Field(..., alias="remoteID", min_length=1)
    amount: str = Field(..., min_length=1)
    currency: str = Field(..., min_length=1)
    payment_status: str = Field(..., alias="paymentStatus")
    hash: str = Field(..., min_length=1)
    payment_date: str | None = Field(default=None, alias="paymentDate")
    gateway_id: str | None = Field(default=None, alias="gatewayID")


class ReturnVerifyRequest(EzlaBase):
    """
    Параметры возврата из шлюза, пересланные браузером.

    ``ServiceID/OrderID/Hash``: основной путь; ``case``, ``id`` и
    ``cached_case_id``: запасные идентификаторы для кросс-доменных редиректов.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    service_id: str | None = Field(default=None, alias="ServiceID")
    order_id: str | None = Field(default=None, alias="OrderID")
    hash: str | None = Field(default=None, alias="Hash")
    case: str | None = None
    id: str | None = None
    cached_case_id: str | None = None

    @property
    def has_gateway_params(self) -> bool:
        return bool(self.service_id and self.order_id and self.hash)


class ReturnVerification(EzlaBase):
    """Ответ верификатора return URL."""
    valid: bool
    verified: bool = False
    source: str
    case_id: UUID | None = None
    case_number: str | None = None
    payment_status: PaymentStatus | None = None
    case_status: CaseStatus | None = None
    display_state: DisplayState
    clear_local_cache: bool = False
