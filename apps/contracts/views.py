from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from django.db.models import Q
import logging

from apps.jobs.models import Job
from apps.jobs.serializers import JobRecordSerializer
from core.utils import success
from . import services
from .models import Contract
from .serializers import ContractSerializer, ConfirmPairingSerializer

logger = logging.getLogger(__name__)

CONTRACT_NOT_FOUND = {'success': False, 'message': 'Contract not found'}

ERROR_RESPONSES = {
    400: 'Action not allowed in the current status',
    401: 'Unauthorized',
    403: 'Forbidden',
    404: 'Not Found',
}


def visible_contracts(user):
    return Contract.objects.filter(Q(client=user) | Q(doer=user)).select_related('job')


class ContractDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Retrieve a contract you are a party to.",
        responses={200: ContractSerializer, 401: 'Unauthorized', 404: 'Not Found'}
    )
    def get(self, request, id):
        try:
            contract = visible_contracts(request.user).get(pk=id)
        except Contract.DoesNotExist:
            return Response(CONTRACT_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success(contract=ContractSerializer(contract, context={'user': request.user}).data))


class ContractAcceptView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Accept the contract terms. Once both parties accept, the contract is 'accepted'.",
        responses={200: ContractSerializer, **ERROR_RESPONSES}
    )
    def put(self, request, id):
        try:
            contract = services.accept_terms(id, request.user)
        except Contract.DoesNotExist:
            return Response(CONTRACT_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success("Terms accepted", contract=ContractSerializer(contract, context={'user': request.user}).data))


class ContractConfirmView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Confirm the work is done. Opens 5 minutes before the scheduled end. "
                              "Answers 409 on a repeated confirmation.",
        responses={200: ContractSerializer, 409: 'Already confirmed', **ERROR_RESPONSES}
    )
    def post(self, request, id):
        try:
            contract, job = services.confirm_completion(id, request.user)
        except Contract.DoesNotExist:
            return Response(CONTRACT_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        message = "Contract completed" if contract.status == 'completed' else "Confirmation recorded"
        return Response(success(
            message,
            contract=ContractSerializer(contract, context={'user': request.user}).data,
            jobStatus=job.status,
        ))


class GeneratePairingView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Generate the in-person pairing code. Requires accepted terms and a start within 24 hours.",
        responses={200: 'Pairing code and expiry', **ERROR_RESPONSES}
    )
    def post(self, request, id):
        try:
            contract = services.generate_pairing(id, request.user)
        except Contract.DoesNotExist:
            return Response(CONTRACT_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success(
            "Pairing code generated",
            pairingCode=contract.pairing_code if contract.role_of(request.user) == 'doer' else None,
            pairingExpiry=contract.pairing_expiry.isoformat(),
        ))


class ConfirmPairingView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Enter the pairing code. When both parties confirm, the contract starts.",
        request_body=ConfirmPairingSerializer,
        responses={200: ContractSerializer, **ERROR_RESPONSES}
    )
    def post(self, request, id):
        serializer = ConfirmPairingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            contract, started = services.confirm_pairing(id, request.user, serializer.validated_data['code'])
        except Contract.DoesNotExist:
            return Response(CONTRACT_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success(
            "Contract started" if started else "Pairing confirmed, waiting for the other party",
            contract=ContractSerializer(contract, context={'user': request.user}).data,
        ))


class ContractByJobView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="The caller's contract for a job: the doer's own contract, or the first one for the client.",
        responses={200: ContractSerializer, 401: 'Unauthorized', 404: 'Not Found'}
    )
    def get(self, request, job_id):
        contract = visible_contracts(request.user).filter(job_id=job_id).exclude(status='cancelled').first()
        if contract is None:
            return Response(CONTRACT_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success(
            contract=ContractSerializer(contract, context={'user': request.user}).data,
            job=JobRecordSerializer(contract.job).data,
        ))


class ContractsAllByJobView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Every contract of a job (job owner only).",
        responses={200: ContractSerializer(many=True), 401: 'Unauthorized', 404: 'Not Found'}
    )
    def get(self, request, job_id):
        try:
            job = Job.objects.get(pk=job_id, client=request.user)
        except Job.DoesNotExist:
            return Response({'success': False, 'message': 'Job not found'}, status=status.HTTP_404_NOT_FOUND)
        contracts = job.contracts.select_related('job')
        return Response(success(
            job=JobRecordSerializer(job).data,
            contracts=ContractSerializer(contracts, many=True, context={'user': request.user}).data,
        ))
