from django.contrib import admin
from .models import Contract

@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ('id', 'job', 'client', 'doer', 'status', 'escrow_status', 'client_confirmed', 'doer_confirmed')
    list_filter = ('status', 'escrow_status', 'auto_confirmed')
    search_fields = ('job__title', 'client__username', 'doer__username')
    readonly_fields = ('created_at', 'updated_at', 'completed_at')
