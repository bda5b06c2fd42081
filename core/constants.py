# core/constants.py
from datetime import timedelta

JOB_STATUS_CHOICES = (
    ('draft', 'Draft'),                        # Created by the client, not yet paid
    ('pending_payment', 'Pending Payment'),    # Submitted, waiting for the publication payment
    ('pending_approval', 'Pending Approval'),  # Paid, waiting for operator approval
    ('open', 'Open'),                          # Published, accepting proposals
    ('in_progress', 'In Progress'),            # At least one worker selected
    ('completed', 'Completed'),                # Every contract confirmed by both parties
    ('cancelled', 'Cancelled'),
    ('paused', 'Paused'),                      # Paused by the client or awaiting a budget payment
    ('suspended', 'Suspended'),                # Flexible end date never supplied
)

PROPOSAL_STATUS_CHOICES = (
    ('pending', 'Pending'),      # Worker applied, awaiting client response
    ('approved', 'Approved'),    # Worker selected, contract created
    ('rejected', 'Rejected'),
    ('withdrawn', 'Withdrawn'),  # Worker pulled the application
)

CONTRACT_STATUS_CHOICES = (
    ('pending', 'Pending'),                              # Created, terms not yet accepted by both
    ('accepted', 'Accepted'),                            # Both parties accepted the terms
    ('in_progress', 'In Progress'),                      # Pairing confirmed, work started
    ('awaiting_confirmation', 'Awaiting Confirmation'),  # One party confirmed completion
    ('completed', 'Completed'),
    ('cancelled', 'Cancelled'),
)

ESCROW_STATUS_CHOICES = (
    ('held', 'Held'),
    ('released', 'Released'),
    ('refunded', 'Refunded'),
)

# Deadlines
PRE_START_WINDOW = timedelta(hours=24)
CONFIRMATION_LEAD = timedelta(minutes=5)

PAIRING_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
PAIRING_CODE_LENGTH = 10

DEFAULT_ESTIMATED_DURATION_DAYS = 7
MIN_BUDGET_REASON_LENGTH = 10

NO_APPLICANTS_MARKER = 'no worker applied'
NO_APPLICANTS_REASON = f'Cancelled automatically: {NO_APPLICANTS_MARKER} before the scheduled start.'
EXPIRED_REASON = 'Cancelled automatically: the scheduled date passed before a worker was selected.'
AUTO_SELECT_REJECTION_REASON = 'Auto-selection: another candidate was selected automatically.'
SELECTION_REJECTION_REASON = 'Another proposal was approved.'
