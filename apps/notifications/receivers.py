import logging

from django.dispatch import receiver

from apps.jobs.signals import contract_updated, job_updated, proposal_created
from .utils import send_notification

logger = logging.getLogger(__name__)

SIGN_OFF = "\n\nBest regards,\nMarketplace Team"

# job_updated actions worth telling people about
JOB_MESSAGES = {
    'published': ("Your job '{title}' is live", "Workers can now apply to '{title}'."),
    'approved': ("Your job '{title}' was approved", "'{title}' has been approved and is open for proposals."),
    'cancelled': ("Job cancelled: {title}", "'{title}' has been cancelled."),
    'auto_cancel': ("Job cancelled: {title}", "'{title}' was cancelled automatically because no worker applied."),
    'expire': ("Job expired: {title}", "'{title}' was cancelled automatically because its dates passed."),
    'suspended': ("Action needed: {title}", "'{title}' was suspended. Set a fixed end date to reactivate it."),
    'budget_payment_required': ("Payment needed for {title}", "Complete the payment to apply the new budget of '{title}'."),
    'budget_paid': ("Budget updated: {title}", "The new budget of '{title}' is now active."),
    'completed': ("Job completed: {title}", "'{title}' is complete. Thank you!"),
}


@receiver(proposal_created)
def notify_new_proposal(sender, proposal, action, **kwargs):
    job = proposal.job
    try:
        send_notification(
            job.client,
            f"New proposal for {job.title}",
            (
                f"Dear {job.client.display_name},\n\n"
                f"{proposal.freelancer.display_name} applied to your job '{job.title}' "
                f"offering {proposal.proposed_price}."
                f"{SIGN_OFF}"
            ),
            f"New proposal for '{job.title}' from {proposal.freelancer.display_name}.",
        )
    except Exception as e:
        logger.error(f"Error notifying new proposal {proposal.pk}: {str(e)}")


@receiver(job_updated)
def notify_job_updated(sender, job, action, **kwargs):
    try:
        if action == 'proposal_rejected':
            proposal = kwargs['proposal']
            send_notification(
                proposal.freelancer,
                f"Proposal not selected for {job.title}",
                f"Dear {proposal.freelancer.display_name},\n\nYour proposal for '{job.title}' was not selected.{SIGN_OFF}",
                f"Your proposal for '{job.title}' was not selected.",
            )
            return

        if action not in JOB_MESSAGES:
            return
        subject, text = (template.format(title=job.title) for template in JOB_MESSAGES[action])
        recipients = [job.client]
        if action in ('cancelled', 'completed', 'suspended'):
            recipients += list(job.selected_workers.all())
        for user in recipients:
            send_notification(user, subject, f"Dear {user.display_name},\n\n{text}{SIGN_OFF}", text)
    except Exception as e:
        logger.error(f"Error notifying job {job.pk} update ({action}): {str(e)}")


@receiver(contract_updated)
def notify_contract_updated(sender, contract, action, **kwargs):
    job = contract.job
    try:
        if action == 'created':
            send_notification(
                contract.doer,
                f"You were selected for {job.title}",
                (
                    f"Dear {contract.doer.display_name},\n\n"
                    f"You have been selected for '{job.title}'. Review and accept the contract terms.\n"
                    f"- Price: {contract.price}\n"
                    f"- Start: {contract.start_date}"
                    f"{SIGN_OFF}"
                ),
                f"You were selected for '{job.title}'. Accept the contract terms to continue.",
            )
        elif action in ('confirmed', 'auto_confirmed') and contract.status == 'completed':
            for user in (contract.client, contract.doer):
                send_notification(
                    user,
                    f"Contract completed: {job.title}",
                    f"Dear {user.display_name},\n\nThe contract for '{job.title}' is complete.{SIGN_OFF}",
                    f"The contract for '{job.title}' is complete.",
                )
        elif action == 'confirmed':
            waiting_on = contract.doer if contract.client_confirmed else contract.client
            send_notification(
                waiting_on,
                f"Please confirm: {job.title}",
                (
                    f"Dear {waiting_on.display_name},\n\n"
                    f"The other party confirmed the work on '{job.title}' is done. Please confirm too."
                    f"{SIGN_OFF}"
                ),
                f"Please confirm completion of '{job.title}'.",
            )
    except Exception as e:
        logger.error(f"Error notifying contract {contract.pk} update ({action}): {str(e)}")
