from django.contrib import admin
from .models import PaymentEvent

@admin.register(PaymentEvent)
class PaymentEventAdmin(admin.ModelAdmin):
    list_display = ('kind', 'job', 'contract', 'amount', 'status', 'created_at', 'sent_at')
    list_filter = ('kind', 'status')
    search_fields = ('job__title',)
    readonly_fields = ('payload', 'error_message', 'created_at', 'sent_at')
