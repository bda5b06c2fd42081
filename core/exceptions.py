import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class LifecycleError(Exception):
    """Base class for recoverable job/contract lifecycle conditions."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Action not allowed"

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def as_response_data(self):
        data = {'success': False, 'message': self.message}
        data.update(self.extra)
        return data


class InvalidTransition(LifecycleError):
    default_message = "This action is not allowed in the current status"

    def __init__(self, current_status, action, message=None):
        self.current_status = current_status
        self.action = action
        super().__init__(
            message or f"Cannot {action.replace('_', ' ')} while status is '{current_status}'",
            currentStatus=current_status,
            action=action,
        )


class AlreadyConfirmed(LifecycleError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "You have already confirmed this contract"


class WindowNotOpen(LifecycleError):
    default_message = "Confirmation opens 5 minutes before the scheduled end"

    def __init__(self, opens_at=None, message=None):
        extra = {}
        if opens_at is not None:
            extra['opensAt'] = opens_at.isoformat()
        super().__init__(message, **extra)


class CapacityExceeded(LifecycleError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "All worker slots for this job are already filled"


class PaymentRequired(LifecycleError):
    """Not a failure: the caller must complete a supplemental payment."""
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "Complete the payment to apply the new budget"

    def __init__(self, amount_required, breakdown, message=None, **extra):
        self.amount_required = amount_required
        self.breakdown = breakdown
        super().__init__(
            message,
            requiresPayment=True,
            amountRequired=str(amount_required),
            breakdown={key: str(value) for key, value in breakdown.items()},
            **extra,
        )


class RedirectRequired(LifecycleError):
    default_message = "This action must be performed on another resource"

    def __init__(self, redirect_to, message=None):
        self.redirect_to = redirect_to
        super().__init__(message, redirectTo=redirect_to)


class InvalidPairingCode(LifecycleError):
    default_message = "Incorrect pairing code"


class NotAllowed(LifecycleError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to perform this action"


def api_exception_handler(exc, context):
    """Render every error in the `{success: false, message}` envelope."""
    if isinstance(exc, LifecycleError):
        return Response(exc.as_response_data(), status=exc.status_code)
    if isinstance(exc, DjangoValidationError):
        errors = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        return Response(
            {'success': False, 'message': 'Invalid request', 'errors': errors},
            status=status.HTTP_400_BAD_REQUEST,
        )

    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data
        if isinstance(detail, dict) and 'detail' in detail:
            response.data = {'success': False, 'message': str(detail['detail'])}
        else:
            response.data = {'success': False, 'message': 'Invalid request', 'errors': detail}
        return response

    view = context.get('view')
    logger.error(f"Unhandled error in {view.__class__.__name__ if view else 'view'}: {exc}", exc_info=exc)
    return Response({'success': False, 'message': 'Server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
