"""In-person pairing codes that mark the actual start of a contract."""
import secrets
from datetime import timedelta

from core.constants import PAIRING_CODE_ALPHABET, PAIRING_CODE_LENGTH, PRE_START_WINDOW
from core.exceptions import InvalidPairingCode, InvalidTransition, NotAllowed, AlreadyConfirmed


def generate_code():
    return ''.join(secrets.choice(PAIRING_CODE_ALPHABET) for _ in range(PAIRING_CODE_LENGTH))


def ensure_can_generate(contract, now):
    if contract.status != 'accepted':
        raise InvalidTransition(contract.status, 'generate_pairing', "Both parties must accept the terms first")
    if contract.start_date and contract.start_date - now > PRE_START_WINDOW:
        raise InvalidTransition(
            contract.status, 'generate_pairing',
            "The pairing code can only be generated within 24 hours of the start",
        )


def issue(contract, now, ttl_hours):
    """Attach a fresh code to ``contract`` and reset both pairing confirmations."""
    ensure_can_generate(contract, now)
    contract.pairing_code = generate_code()
    contract.pairing_generated_at = now
    contract.pairing_expiry = now + timedelta(hours=ttl_hours)
    contract.client_confirmed_pairing = False
    contract.doer_confirmed_pairing = False
    return contract.pairing_code


def is_valid(contract, now):
    return bool(contract.pairing_code) and contract.pairing_expiry is not None and now < contract.pairing_expiry


def matches(contract, code):
    return bool(code) and contract.pairing_code == code.strip().upper()


def confirm(contract, role, code, now):
    """
    Record that ``role`` entered ``code``.

    Returns True when both parties have confirmed and the contract started.
    """
    if role not in ('client', 'doer'):
        raise NotAllowed("Only the parties of this contract can confirm the pairing")
    if contract.status != 'accepted':
        raise InvalidTransition(contract.status, 'confirm_pairing')
    if not is_valid(contract, now):
        raise InvalidPairingCode("The pairing code has expired or was never generated")
    if not matches(contract, code):
        raise InvalidPairingCode()
    if getattr(contract, f'{role}_confirmed_pairing'):
        raise AlreadyConfirmed("You have already confirmed the pairing")

    setattr(contract, f'{role}_confirmed_pairing', True)
    if contract.client_confirmed_pairing and contract.doer_confirmed_pairing:
        contract.status = 'in_progress'
        contract.actual_start_date = now
        return True
    return False
