from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import AllowAny
from drf_yasg.utils import swagger_auto_schema
from django.conf import settings
import logging

from apps.jobs import services as job_services
from apps.jobs.models import Job
from core.utils import success
from .serializers import PaymentCallbackSerializer
from .utils import verify_signature

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = 'X-Payments-Signature'


class PaymentCallbackView(APIView):
    """Webhook called by the payment subsystem when a charge succeeds."""
    authentication_classes = []
    permission_classes = [AllowAny]

    @swagger_auto_schema(
        operation_description="Payment subsystem webhook. Body is signed with HMAC-SHA256 in the "
                              f"{SIGNATURE_HEADER} header.",
        request_body=PaymentCallbackSerializer,
        responses={200: 'Processed', 400: 'Bad Request', 401: 'Invalid signature', 404: 'Not Found'}
    )
    def post(self, request):
        # the raw body must be read before request.data consumes the stream
        body = request.body
        if settings.PAYMENTS_WEBHOOK_SECRET:
            if not verify_signature(body, request.headers.get(SIGNATURE_HEADER)):
                logger.error('Invalid payment webhook signature')
                return Response({'success': False, 'message': 'Invalid webhook signature'},
                                status=status.HTTP_401_UNAUTHORIZED)
        else:
            logger.warning('PAYMENTS_WEBHOOK_SECRET is not set, accepting unsigned payment webhook')
        logger.debug(f"Received payment webhook: {request.data}")

        serializer = PaymentCallbackSerializer(data=request.data)
        if not serializer.is_valid():
            logger.error(f"Rejected payment webhook: {serializer.errors}")
            return Response({'success': False, 'message': 'Invalid payment event', 'errors': serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)
        event = serializer.validated_data['event']
        job_id = serializer.validated_data['job_id']

        try:
            if event == 'publication_paid':
                job = job_services.publish_job(job_id, serializer.validated_data.get('amount'))
            else:
                job = job_services.confirm_budget_payment(job_id)
        except Job.DoesNotExist:
            logger.error(f"Job not found for payment event {event}: {job_id}")
            return Response({'success': False, 'message': 'Job not found'}, status=status.HTTP_404_NOT_FOUND)

        logger.info(f"Payment event {event} processed for job {job.code}")
        return Response(success("Payment processed", jobId=str(job.id), status=job.status))
