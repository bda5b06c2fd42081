from django.urls import path
from .views import ProposalApproveView, ProposalRejectView, ProposalDeleteView

urlpatterns = [
    path('<uuid:id>/', ProposalDeleteView.as_view(), name='proposal_delete'),
    path('<uuid:id>/approve/', ProposalApproveView.as_view(), name='proposal_approve'),
    path('<uuid:id>/reject/', ProposalRejectView.as_view(), name='proposal_reject'),
]
