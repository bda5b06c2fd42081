from django.contrib import admin
from .models import Job, Proposal

@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ('title', 'code', 'client', 'status', 'price', 'start_date', 'end_date', 'max_workers')
    list_filter = ('status', 'end_date_flexible')
    search_fields = ('title', 'client__username')
    readonly_fields = ('price_history', 'created_at', 'updated_at')

@admin.register(Proposal)
class ProposalAdmin(admin.ModelAdmin):
    list_display = ('job', 'freelancer', 'proposed_price', 'status', 'created_at')
    list_filter = ('status', 'is_counter_offer')
    search_fields = ('job__title', 'freelancer__username')
