import random
from decimal import Decimal

import pytest

from groupledger.balances import compute_balances, is_group_settled
from groupledger.errors import CurrencyMismatch, InconsistentExpense, UnknownMemberReference
from groupledger.models import Expense, Member, ParticipantShare, Payment
from groupledger.splitter import calculate_split

D = Decimal


def _members(*ids):
    return [Member(member_id, f"Member {member_id}") for member_id in ids]


def _equal_expense(expense_id, payer_id, total, participant_ids, currency="USD"):
    shares = calculate_split(total, "equal", [{"member_id": m} for m in participant_ids])
    return Expense(expense_id, "g1", payer_id, total, currency, "equal", shares)


def _payment(payment_id, payer_id, recipient_id, amount, currency="USD"):
    return Payment(payment_id, "g1", payer_id, recipient_id, amount, currency)


def _amounts(balances):
    return {balance.member_id: balance.amount for balance in balances}


def test_single_equal_expense():
    balances = compute_balances(
        _members("A", "B", "C"),
        [_equal_expense("E001", "A", "100.00", ["A", "B", "C"])],
        []
    )
    assert _amounts(balances) == {"A": D("66.66"), "B": D("-33.33"), "C": D("-33.33")}
    assert [b.member_id for b in balances] == ["A", "B", "C"]
    assert all(b.currency == "USD" for b in balances)


def test_payment_raises_payer_and_lowers_recipient():
    balances = compute_balances(
        _members("A", "B", "C"),
        [_equal_expense("E001", "A", "100.00", ["A", "B", "C"])],
        [_payment("P001", "B", "A", "33.33")]
    )
    assert _amounts(balances) == {"A": D("33.33"), "B": D("0.00"), "C": D("-33.33")}

    by_id = {b.member_id: b for b in balances}
    assert by_id["B"].payments_sent == D("33.33")
    assert by_id["A"].payments_received == D("33.33")
    assert by_id["B"].is_settled


def test_member_without_activity_gets_zero_balance():
    balances = compute_balances(
        _members("A", "B", "Z"),
        [_equal_expense("E001", "A", "10.00", ["A", "B"])],
        []
    )
    by_id = {b.member_id: b for b in balances}
    assert by_id["Z"].amount == D("0.00")
    assert by_id["Z"].status.value == "settled"


def test_payer_not_among_participants():
    balances = compute_balances(
        _members("A", "B", "C"),
        [_equal_expense("E001", "A", "30.00", ["B", "C"])],
        []
    )
    assert _amounts(balances) == {"A": D("30.00"), "B": D("-15.00"), "C": D("-15.00")}


def test_no_members_gives_empty_result():
    assert compute_balances([], [], []) == []


def test_default_currency_when_no_rows():
    balances = compute_balances(_members("A"), [], [])
    assert balances[0].currency == "USD"
    assert balances[0].amount == D("0.00")


def test_explicit_currency_is_normalised():
    balances = compute_balances(_members("A"), [], [], currency="eur")
    assert balances[0].currency == "EUR"


def test_unknown_expense_participant():
    with pytest.raises(UnknownMemberReference) as excinfo:
        compute_balances(
            _members("A", "B"),
            [_equal_expense("E001", "A", "10.00", ["A", "X"])],
            []
        )
    assert excinfo.value.member_id == "X"
    assert excinfo.value.source_id == "E001"


def test_unknown_expense_payer():
    with pytest.raises(UnknownMemberReference):
        compute_balances(
            _members("A", "B"),
            [_equal_expense("E001", "X", "10.00", ["A", "B"])],
            []
        )


def test_unknown_payment_recipient():
    with pytest.raises(UnknownMemberReference) as excinfo:
        compute_balances(_members("A", "B"), [], [_payment("P001", "A", "X", "5.00")])
    assert excinfo.value.source_id == "P001"


def test_inconsistent_expense_aborts_computation():
    broken = Expense(
        "E002", "g1", "A", "100.00", "USD", "exact",
        [ParticipantShare("A", "50.00"), ParticipantShare("B", "49.00")]
    )
    with pytest.raises(InconsistentExpense) as excinfo:
        compute_balances(
            _members("A", "B"),
            [_equal_expense("E001", "A", "10.00", ["A", "B"]), broken],
            []
        )
    assert excinfo.value.expense_id == "E002"
    assert excinfo.value.shares_total == D("99.00")


def test_mixed_currencies_are_rejected():
    with pytest.raises(CurrencyMismatch):
        compute_balances(
            _members("A", "B"),
            [_equal_expense("E001", "A", "10.00", ["A", "B"])],
            [_payment("P001", "B", "A", "5.00", currency="EUR")]
        )


def test_requested_currency_must_match_rows():
    with pytest.raises(CurrencyMismatch) as excinfo:
        compute_balances(
            _members("A", "B"),
            [_equal_expense("E001", "A", "10.00", ["A", "B"])],
            [],
            currency="GBP"
        )
    assert excinfo.value.expected == "GBP"
    assert excinfo.value.found == "USD"


def test_is_group_settled():
    members = _members("A", "B")
    expenses = [_equal_expense("E001", "A", "10.00", ["A", "B"])]
    assert not is_group_settled(compute_balances(members, expenses, []))

    payments = [_payment("P001", "B", "A", "5.00")]
    assert is_group_settled(compute_balances(members, expenses, payments))


# randomized group histories -----------------------------------------------

def _random_group(seed):
    rng = random.Random(seed)
    member_ids = [f"M{i:03d}" for i in range(rng.randint(2, 7))]
    expenses = []
    for index in range(rng.randint(0, 25)):
        participants = rng.sample(member_ids, rng.randint(1, len(member_ids)))
        total = D(rng.randint(1, 50000)) / 100
        method = rng.choice(["equal", "shares"])
        if method == "equal":
            raw = [{"member_id": m} for m in participants]
        else:
            raw = [{"member_id": m, "shares": rng.randint(1, 4)} for m in participants]
        shares = calculate_split(total, method, raw)
        expenses.append(Expense(
            f"E{index:03d}", "g1", rng.choice(member_ids), total, "USD", method, shares
        ))
    payments = []
    for index in range(rng.randint(0, 10)):
        payer_id, recipient_id = rng.sample(member_ids, 2)
        amount = D(rng.randint(1, 20000)) / 100
        payments.append(_payment(f"P{index:03d}", payer_id, recipient_id, amount))
    return _members(*member_ids), expenses, payments


@pytest.mark.parametrize("seed", range(25))
def test_balances_sum_to_zero(seed):
    members, expenses, payments = _random_group(seed)
    balances = compute_balances(members, expenses, payments)
    assert sum(b.amount for b in balances) == D("0.00")
    assert {b.member_id for b in balances} == {m.member_id for m in members}


@pytest.mark.parametrize("seed", range(10))
def test_balances_ignore_input_order(seed):
    members, expenses, payments = _random_group(seed)
    expected = compute_balances(members, expenses, payments)

    rng = random.Random(seed + 1000)
    for _ in range(3):
        shuffled = (
            rng.sample(members, len(members)),
            rng.sample(expenses, len(expenses)),
            rng.sample(payments, len(payments)),
        )
        assert compute_balances(*shuffled) == expected


@pytest.mark.parametrize("seed", range(10))
def test_balance_breakdown_adds_up(seed):
    members, expenses, payments = _random_group(seed)
    for balance in compute_balances(members, expenses, payments):
        assert balance.amount == (
            balance.total_paid - balance.total_owed
            + balance.payments_sent - balance.payments_received
        )


def test_compute_balances_is_repeatable():
    members, expenses, payments = _random_group(7)
    assert compute_balances(members, expenses, payments) == compute_balances(members, expenses, payments)
