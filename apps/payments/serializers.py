from rest_framework import serializers

PAYMENT_EVENTS = ['publication_paid', 'budget_paid']


class PaymentCallbackSerializer(serializers.Serializer):
    event = serializers.ChoiceField(choices=PAYMENT_EVENTS)
    job_id = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True)
