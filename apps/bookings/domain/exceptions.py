"""
Booking Domain Exceptions

Every error a booking operation can surface to a caller. Each class
carries the HTTP status and a stable machine readable code so the API
layer can translate it without inspecting messages.
"""


class BookingError(Exception):
    """Base class for booking engine errors"""

    status_code = 400
    default_code = 'booking_error'
    default_detail = 'Ошибка обработки бронирования.'

    def __init__(self, detail: str = None, code: str = None):
        self.detail = detail or self.default_detail
        self.code = code or self.default_code
        super().__init__(self.detail)


class BookingValidationError(BookingError):
    """Malformed or disallowed input"""

    status_code = 400
    default_code = 'validation_error'
    default_detail = 'Некорректные данные бронирования.'


class InvalidTransitionError(BookingValidationError):
    """The current non-terminal status has no edge for the requested action"""

    default_code = 'invalid_transition'
    default_detail = 'Действие недоступно для текущего статуса бронирования.'


class ConflictError(BookingError):
    """The requested range overlaps an occupying booking, or a singleton already exists"""

    status_code = 409
    default_code = 'conflict'
    default_detail = 'Объект недоступен на выбранные даты.'


class TerminalStateError(BookingError):
    """Mutation attempted on a completed, cancelled or expired booking"""

    status_code = 409
    default_code = 'terminal_state'
    default_detail = 'Бронирование уже завершено, отменено или истекло.'


class UnauthorizedActorError(BookingError):
    """The caller lacks the role required for the action"""

    status_code = 403
    default_code = 'unauthorized_actor'
    default_detail = 'Недостаточно прав для выполнения действия.'


class GatewayError(BookingError):
    """The payment gateway failed or returned an unusable response"""

    status_code = 502
    default_code = 'gateway_error'
    default_detail = 'Платёжный шлюз недоступен. Повторите попытку позже.'


class VoucherNotFound(BookingError):
    status_code = 404
    default_code = 'voucher_not_found'
    default_detail = 'Ваучер не найден.'


class VoucherStateError(BookingError):
    """The voucher is expired, cancelled or otherwise cannot be paid"""

    status_code = 409
    default_code = 'voucher_state'
    default_detail = 'Ваучер нельзя оплатить в текущем статусе.'


class BookingNotFound(BookingError):
    status_code = 404
    default_code = 'not_found'
    default_detail = 'Бронирование не найдено.'
