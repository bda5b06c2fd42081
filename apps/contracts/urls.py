from django.urls import path
from .views import (
    ContractDetailView, ContractAcceptView, ContractConfirmView, GeneratePairingView,
    ConfirmPairingView, ContractByJobView, ContractsAllByJobView,
)

urlpatterns = [
    path('<uuid:id>/', ContractDetailView.as_view(), name='contract_detail'),
    path('<uuid:id>/accept/', ContractAcceptView.as_view(), name='contract_accept'),
    path('<uuid:id>/confirm/', ContractConfirmView.as_view(), name='contract_confirm'),
    path('<uuid:id>/generate-pairing/', GeneratePairingView.as_view(), name='contract_generate_pairing'),
    path('<uuid:id>/confirm-pairing/', ConfirmPairingView.as_view(), name='contract_confirm_pairing'),
    path('by-job/<uuid:job_id>/', ContractByJobView.as_view(), name='contract_by_job'),
    path('all-by-job/<uuid:job_id>/', ContractsAllByJobView.as_view(), name='contracts_all_by_job'),
]
