from django.urls import path
from .views import (
    JobListCreateView, JobDetailView, JobSubmitView, JobApproveView, JobPauseView, JobResumeView,
    JobCancelView, JobBudgetView, JobCancelBudgetChangeView, JobProposalsView, JobConfirmationsView,
)

urlpatterns = [
    path('', JobListCreateView.as_view(), name='job_list_create'),
    path('<uuid:id>/', JobDetailView.as_view(), name='job_detail'),
    path('<uuid:id>/submit/', JobSubmitView.as_view(), name='job_submit'),
    path('<uuid:id>/approve/', JobApproveView.as_view(), name='job_approve'),
    path('<uuid:id>/pause/', JobPauseView.as_view(), name='job_pause'),
    path('<uuid:id>/resume/', JobResumeView.as_view(), name='job_resume'),
    path('<uuid:id>/cancel/', JobCancelView.as_view(), name='job_cancel'),
    path('<uuid:id>/budget/', JobBudgetView.as_view(), name='job_budget'),
    path('<uuid:id>/cancel-budget-change/', JobCancelBudgetChangeView.as_view(), name='job_cancel_budget_change'),
    path('<uuid:id>/proposals/', JobProposalsView.as_view(), name='job_proposals'),
    path('<uuid:id>/confirmations/', JobConfirmationsView.as_view(), name='job_confirmations'),
]
