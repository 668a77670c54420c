"""
ezla/models/enums.py: Перечисления домена e-ZLA.

Содержит enum'ы дела и платежа:
    • PaymentStatus: платёжный под-статус дела (pending/success/fail)
    • CaseStatus: статус рабочего процесса дела
    • RecipientType, MainCategory, SymptomDuration: данные анкеты
    • PaymentMethod: способ оплаты, выбранный на шаге «Płatność»
    • ChannelKind, BookingIntent: параметры визита Med24
"""

from enum import Enum


class PaymentStatus(str, Enum):
    """Платёжный статус дела."""
    PENDING = "pending"
    SUCCESS = "success"
    FAIL = "fail"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentStatus.PENDING


class CaseStatus(str, Enum):
    """Статус дела в рабочем процессе."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    COMPLETED = "completed"
    REJECTED = "rejected"


class RecipientType(str, Enum):
    """Получатель больничного листа."""
    PL_EMPLOYER = "pl_employer"
    UNIFORMED = "uniformed"
    STUDENT = "student"
    FOREIGN_EMPLOYER = "foreign_employer"
    CARE = "care"
    KRUS = "krus"


class MainCategory(str, Enum):
    """Основная категория жалоб."""
    COLD_PAIN = "cold_pain"
    GASTRO = "gastro"
    BLADDER = "bladder"
    INJURY = "injury"
    MENSTRUATION = "menstruation"
    BACK_PAIN = "back_pain"
    EYE = "eye"
    MIGRAINE = "migraine"
    ACUTE_STRESS = "acute_stress"
    PSYCH = "psych"


class SymptomDuration(str, Enum):
    """Длительность симптомов."""
    TODAY = "today"
    YESTERDAY = "yesterday"
    DAYS_2_3 = "2_3"
    DAYS_4_5 = "4_5"
    GT_5 = "gt_5"


class PaymentMethod(str, Enum):
    BLIK = "blik"
    CARD = "card"
    TRANSFER = "transfer"


class ChannelKind(str, Enum):
    """Канал консультации Med24."""
    VIDEO_CALL = "video_call"
    TEXT_MESSAGE = "text_message"
    PHONE_CALL = "phone_call"


class BookingIntent(str, Enum):
    RESERVE = "reserve"
    FINALIZE = "finalize"


class DisplayState(str, Enum):
    """Состояние страницы подтверждения после возврата из шлюза."""
    CONFIRMED = "confirmed"
    PENDING = "pending"
    FAILED = "failed"
    UNKNOWN = "unknown"
    VERIFICATION_ERROR = "verification_error"
