from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi
from django.db.models import Q
import logging

from apps.contracts import confirmation
from apps.contracts.serializers import ContractSerializer
from core import clock as clocks
from core.exceptions import PaymentRequired
from core.utils import IsClient, IsWorker, IsAdmin, success
from . import lifecycle, services
from .models import Job, Proposal
from .serializers import (
    JobSerializer, BudgetChangeSerializer, CancelJobSerializer,
    ProposalSerializer, ProposalCreateSerializer, RejectProposalSerializer,
)

logger = logging.getLogger(__name__)

JOB_NOT_FOUND = {'success': False, 'message': 'Job not found'}
PROPOSAL_NOT_FOUND = {'success': False, 'message': 'Proposal not found'}

ERROR_RESPONSES = {
    400: 'Action not allowed in the current status',
    401: 'Unauthorized',
    403: 'Forbidden',
    404: 'Not Found',
}


def job_payload(job, now=None):
    now = now or clocks.resolve().now()
    data = JobSerializer(job).data
    data['lifecycle'] = lifecycle.lifecycle_summary(
        job, now,
        selected_count=job.selected_workers.count(),
        pending_count=job.proposals.filter(status='pending').count(),
    )
    return data


class JobListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsClient()]
        return super().get_permissions()

    @swagger_auto_schema(
        operation_description="List jobs. Clients get their own jobs, workers get open jobs and jobs they work on.",
        manual_parameters=[
            openapi.Parameter('status', openapi.IN_QUERY, type=openapi.TYPE_STRING, description="Filter by status"),
        ],
        responses={200: JobSerializer(many=True), 401: 'Unauthorized'}
    )
    def get(self, request):
        user = request.user
        if user.is_client:
            jobs = Job.objects.filter(client=user)
        else:
            jobs = Job.objects.filter(Q(status='open') | Q(selected_workers=user)).distinct()
        status_filter = request.query_params.get('status')
        if status_filter:
            jobs = jobs.filter(status=status_filter)
        serializer = JobSerializer(jobs, many=True)
        return Response(success(jobs=serializer.data))

    @swagger_auto_schema(
        operation_description="Create a job as a draft.",
        request_body=JobSerializer,
        responses={201: JobSerializer, **ERROR_RESPONSES}
    )
    def post(self, request):
        serializer = JobSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        job = services.create_job(request.user, **serializer.validated_data)
        return Response(success("Job created", job=job_payload(job)), status=status.HTTP_201_CREATED)


class JobDetailView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Retrieve a job with its lifecycle flags (canCancel, canPause, autoSelectAt...).",
        responses={200: JobSerializer, 401: 'Unauthorized', 404: 'Not Found'}
    )
    def get(self, request, id):
        try:
            job = Job.objects.get(pk=id)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success(job=job_payload(job)))

    @swagger_auto_schema(
        operation_description="Update a job. Supplying an end date reactivates a suspended job. "
                              "Use the budget endpoint to change the price.",
        request_body=JobSerializer,
        responses={200: JobSerializer, **ERROR_RESPONSES}
    )
    def put(self, request, id):
        try:
            job = Job.objects.get(pk=id)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        serializer = JobSerializer(job, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        job = services.update_job(job.pk, request.user, serializer.validated_data)
        return Response(success("Job updated", job=job_payload(job)))

    @swagger_auto_schema(
        operation_description="Delete a job that has not been published yet.",
        responses={204: 'No Content', **ERROR_RESPONSES}
    )
    def delete(self, request, id):
        try:
            services.delete_job(id, request.user)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(status=status.HTTP_204_NO_CONTENT)


class JobSubmitView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Submit a draft job for publication. It waits for the publication payment.",
        responses={200: JobSerializer, **ERROR_RESPONSES}
    )
    def patch(self, request, id):
        try:
            job = services.submit_job(id, request.user)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success("Job submitted, waiting for payment", job=job_payload(job)))


class JobApproveView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    @swagger_auto_schema(
        operation_description="Approve a paid job and open it for proposals (operators only).",
        responses={200: JobSerializer, **ERROR_RESPONSES}
    )
    def patch(self, request, id):
        try:
            job = services.approve_job(id)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success("Job approved", job=job_payload(job)))


class JobPauseView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Pause an open job. Only allowed more than 24 hours before the start.",
        responses={200: JobSerializer, **ERROR_RESPONSES}
    )
    def patch(self, request, id):
        try:
            job = services.pause_job(id, request.user)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success("Job paused", job=job_payload(job)))


class JobResumeView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Resume a paused job.",
        responses={200: JobSerializer, **ERROR_RESPONSES}
    )
    def patch(self, request, id):
        try:
            job = services.resume_job(id, request.user)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success("Job resumed", job=job_payload(job)))


class JobCancelView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Cancel a job. Allowed while pending approval, or more than 24 hours before the start.",
        request_body=CancelJobSerializer,
        responses={200: JobSerializer, **ERROR_RESPONSES}
    )
    def patch(self, request, id):
        serializer = CancelJobSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            job, refund = services.cancel_job(id, request.user, serializer.validated_data['reason'])
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success("Job cancelled", job=job_payload(job), refundAmount=str(refund)))


class JobBudgetView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Change the job budget. An increase beyond what was already paid answers 402 "
                              "with a payment breakdown and pauses the job until the payment arrives. "
                              "Jobs with a contract answer 400 with redirectTo.",
        request_body=BudgetChangeSerializer,
        responses={
            200: JobSerializer,
            402: 'Supplemental payment required',
            **ERROR_RESPONSES
        }
    )
    def patch(self, request, id):
        serializer = BudgetChangeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            job, plan = services.change_budget(
                id, request.user, serializer.validated_data['newPrice'], serializer.validated_data['reason']
            )
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        if plan.requires_payment:
            raise PaymentRequired(plan.total, plan.breakdown(), jobId=str(job.id), jobStatus=job.status)
        return Response(success("Budget updated", job=job_payload(job)))


class JobCancelBudgetChangeView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Drop a budget increase that is waiting for payment and restore the previous status.",
        responses={200: JobSerializer, **ERROR_RESPONSES}
    )
    def patch(self, request, id):
        try:
            job = services.cancel_budget_change(id, request.user)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success("Budget change cancelled", job=job_payload(job)))


class JobProposalsView(APIView):
    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsWorker()]
        return [IsAuthenticated(), IsClient()]

    @swagger_auto_schema(
        operation_description="List the proposals of a job (job owner only).",
        responses={200: ProposalSerializer(many=True), 401: 'Unauthorized', 404: 'Not Found'}
    )
    def get(self, request, id):
        try:
            job = Job.objects.get(pk=id, client=request.user)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        serializer = ProposalSerializer(job.proposals.all(), many=True)
        return Response(success(proposals=serializer.data))

    @swagger_auto_schema(
        operation_description="Apply to a job. Leaving proposed_price out accepts the posted price.",
        request_body=ProposalCreateSerializer,
        responses={201: ProposalSerializer, **ERROR_RESPONSES}
    )
    def post(self, request, id):
        serializer = ProposalCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            proposal = services.apply_to_job(id, request.user, **serializer.validated_data)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(
            success("Proposal sent", proposal=ProposalSerializer(proposal).data),
            status=status.HTTP_201_CREATED,
        )


class JobConfirmationsView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Confirmation matrix of a job: per-contract confirmation flags and team progress.",
        responses={200: 'Confirmation matrix', 401: 'Unauthorized', 404: 'Not Found'}
    )
    def get(self, request, id):
        try:
            job = Job.objects.get(pk=id)
        except Job.DoesNotExist:
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        contracts = list(job.contracts.select_related('doer'))
        if request.user.pk != job.client_id and not any(c.doer_id == request.user.pk for c in contracts):
            return Response(JOB_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        matrix = confirmation.confirmation_matrix(job, contracts, request.user, clocks.resolve().now())
        return Response(success(**matrix))


class ProposalApproveView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Select the worker behind a proposal. Creates the contract; answers 409 when "
                              "every worker slot is already filled.",
        responses={200: 'Contract created', 409: 'All worker slots filled', **ERROR_RESPONSES}
    )
    def put(self, request, id):
        try:
            contract = services.select_worker(id, request.user)
        except Proposal.DoesNotExist:
            return Response(PROPOSAL_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success(
            "Worker selected",
            contract=ContractSerializer(contract).data,
            job=job_payload(contract.job),
        ))


class ProposalRejectView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Reject a pending proposal.",
        request_body=RejectProposalSerializer,
        responses={200: ProposalSerializer, **ERROR_RESPONSES}
    )
    def put(self, request, id):
        serializer = RejectProposalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            proposal = services.reject_proposal(id, request.user, serializer.validated_data['reason'])
        except Proposal.DoesNotExist:
            return Response(PROPOSAL_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success("Proposal rejected", proposal=ProposalSerializer(proposal).data))


class ProposalDeleteView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Withdraw your own pending proposal.",
        responses={200: ProposalSerializer, **ERROR_RESPONSES}
    )
    def delete(self, request, id):
        try:
            proposal = services.withdraw_proposal(id, request.user)
        except Proposal.DoesNotExist:
            return Response(PROPOSAL_NOT_FOUND, status=status.HTTP_404_NOT_FOUND)
        return Response(success("Proposal withdrawn", proposal=ProposalSerializer(proposal).data))
