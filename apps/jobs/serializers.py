from rest_framework import serializers

from apps.users.serializers import UserSummarySerializer
from core.constants import MIN_BUDGET_REASON_LENGTH
from .models import Job, Proposal


class JobSerializer(serializers.ModelSerializer):
    client = UserSummarySerializer(read_only=True)
    selected_workers = UserSummarySerializer(many=True, read_only=True)
    code = serializers.CharField(read_only=True)

    class Meta:
        model = Job
        fields = [
            'id', 'code', 'client', 'title', 'description', 'location', 'status',
            'price', 'publication_amount', 'start_date', 'end_date', 'end_date_flexible',
            'max_workers', 'selected_workers', 'doer',
            'cancellation_reason', 'cancelled_at',
            'pending_new_price', 'pending_payment_amount', 'original_price', 'previous_status',
            'price_change_reason', 'price_history', 'paused_at', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'status', 'publication_amount', 'doer', 'cancellation_reason', 'cancelled_at',
            'pending_new_price', 'pending_payment_amount', 'original_price', 'previous_status',
            'price_change_reason', 'price_history', 'paused_at', 'created_at', 'updated_at',
        ]

    def validate(self, data):
        start = data.get('start_date', getattr(self.instance, 'start_date', None))
        end = data.get('end_date', getattr(self.instance, 'end_date', None))
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': "End date must be on or after the start date."})
        if self.instance is not None and 'price' in data and data['price'] != self.instance.price:
            raise serializers.ValidationError({'price': "Use the budget endpoint to change the price."})
        return data


class JobRecordSerializer(serializers.ModelSerializer):
    """Flat job record with every lifecycle field, used next to contracts."""

    class Meta:
        model = Job
        fields = [
            'id', 'client', 'title', 'status', 'price', 'publication_amount',
            'start_date', 'end_date', 'end_date_flexible', 'max_workers', 'doer',
            'cancelled_at', 'pending_new_price', 'pending_payment_amount', 'original_price',
            'previous_status', 'paused_at',
        ]


class BudgetChangeSerializer(serializers.Serializer):
    newPrice = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    reason = serializers.CharField(min_length=MIN_BUDGET_REASON_LENGTH)


class CancelJobSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ProposalSerializer(serializers.ModelSerializer):
    freelancer = UserSummarySerializer(read_only=True)

    class Meta:
        model = Proposal
        fields = [
            'id', 'job', 'freelancer', 'proposed_price', 'is_counter_offer', 'estimated_duration',
            'message', 'status', 'rejection_reason', 'created_at',
        ]
        read_only_fields = ['job', 'is_counter_offer', 'status', 'rejection_reason', 'created_at']


class ProposalCreateSerializer(serializers.Serializer):
    proposed_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    estimated_duration = serializers.IntegerField(min_value=1, required=False)
    message = serializers.CharField(required=False, allow_blank=True, default='')


class RejectProposalSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
