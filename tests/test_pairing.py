from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.contracts import pairing
from apps.contracts.models import Contract
from core.constants import PAIRING_CODE_ALPHABET, PAIRING_CODE_LENGTH
from core.exceptions import AlreadyConfirmed, InvalidPairingCode, InvalidTransition

NOW = timezone.now()


def accepted_contract(**fields):
    data = {
        'price': Decimal('50.00'), 'commission': Decimal('5.00'), 'total_price': Decimal('55.00'),
        'status': 'accepted', 'start_date': NOW + timedelta(hours=2),
        'terms_accepted_by_client': True, 'terms_accepted_by_doer': True,
    }
    data.update(fields)
    return Contract(**data)


def test_generated_codes_use_the_unambiguous_alphabet():
    code = pairing.generate_code()
    assert len(code) == PAIRING_CODE_LENGTH
    assert set(code) <= set(PAIRING_CODE_ALPHABET)
    assert not set(code) & set('01IO')


def test_issue_sets_expiry_and_resets_confirmations():
    contract = accepted_contract(client_confirmed_pairing=True)
    code = pairing.issue(contract, NOW, ttl_hours=72)
    assert contract.pairing_code == code
    assert contract.pairing_expiry == NOW + timedelta(hours=72)
    assert contract.client_confirmed_pairing is False


def test_cannot_generate_before_terms_are_accepted():
    with pytest.raises(InvalidTransition):
        pairing.issue(accepted_contract(status='pending'), NOW, ttl_hours=72)


def test_cannot_generate_more_than_a_day_before_start():
    with pytest.raises(InvalidTransition):
        pairing.issue(accepted_contract(start_date=NOW + timedelta(hours=30)), NOW, ttl_hours=72)


def test_code_valid_strictly_before_expiry():
    contract = accepted_contract()
    pairing.issue(contract, NOW, ttl_hours=1)
    assert pairing.is_valid(contract, NOW + timedelta(minutes=59))
    assert not pairing.is_valid(contract, NOW + timedelta(hours=1))


def test_both_parties_confirm_to_start():
    contract = accepted_contract()
    code = pairing.issue(contract, NOW, ttl_hours=72)

    assert pairing.confirm(contract, 'doer', code.lower(), NOW) is False
    assert contract.status == 'accepted'
    with pytest.raises(AlreadyConfirmed):
        pairing.confirm(contract, 'doer', code, NOW)

    assert pairing.confirm(contract, 'client', f' {code} ', NOW + timedelta(minutes=1)) is True
    assert contract.status == 'in_progress'
    assert contract.actual_start_date == NOW + timedelta(minutes=1)


def test_wrong_or_expired_code_is_rejected():
    contract = accepted_contract()
    code = pairing.issue(contract, NOW, ttl_hours=1)
    with pytest.raises(InvalidPairingCode):
        pairing.confirm(contract, 'client', 'WRONGCODE9', NOW)
    with pytest.raises(InvalidPairingCode):
        pairing.confirm(contract, 'client', code, NOW + timedelta(hours=2))
    assert contract.client_confirmed_pairing is False
