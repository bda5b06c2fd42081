from rest_framework import serializers

from .models import Contract


class ContractSerializer(serializers.ModelSerializer):
    code = serializers.SerializerMethodField()

    class Meta:
        model = Contract
        fields = [
            'id', 'code', 'job', 'proposal', 'client', 'doer',
            'price', 'commission', 'total_price', 'status', 'escrow_status',
            'start_date', 'end_date',
            'terms_accepted_by_client', 'terms_accepted_by_doer', 'terms_accepted_at',
            'client_confirmed', 'doer_confirmed', 'client_confirmed_at', 'doer_confirmed_at',
            'awaiting_confirmation_at', 'auto_confirmed', 'completed_at',
            'pairing_code', 'pairing_generated_at', 'pairing_expiry',
            'client_confirmed_pairing', 'doer_confirmed_pairing', 'actual_start_date',
            'cancelled_at', 'created_at', 'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']

    def get_code(self, obj):
        return obj.job.code

    def to_representation(self, instance):
        data = super().to_representation(instance)
        # the pairing code is only shown to the doer, who reads it out to the client
        user = self.context.get('user')
        if user is not None and instance.role_of(user) != 'doer':
            data['pairing_code'] = None
        return data


class ConfirmPairingSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=20)
