from decimal import Decimal

import pytest

from groupledger.errors import InvalidSplit, SplitErrorReason
from groupledger.models import Expense, ParticipantShare, SplitMethod
from groupledger.splitter import (
    calculate_split,
    can_modify_participants,
    recalculate_split,
    split_by_exact_amounts,
    split_by_percentage,
    split_by_shares,
    split_equally,
    validate_expense,
)

D = Decimal


def _amounts(shares):
    return [share.amount for share in shares]


def _expense(total, shares, method=SplitMethod.EXACT, expense_id="E001"):
    return Expense(
        expense_id=expense_id,
        group_id="g1",
        payer_id="A",
        total_amount=total,
        currency="USD",
        split_method=method,
        shares=shares,
    )


def _reason(excinfo):
    return excinfo.value.reason


# equal ---------------------------------------------------------------------

def test_equal_split_gives_extra_cent_to_first_participant():
    shares = calculate_split("100.00", "equal", [{"member_id": m} for m in ["A", "B", "C"]])
    assert _amounts(shares) == [D("33.34"), D("33.33"), D("33.33")]
    assert sum(_amounts(shares)) == D("100.00")


def test_equal_split_remainder_follows_input_order_not_ids():
    result = split_equally(D("0.05"), ["C", "B", "A"])
    assert result == {"C": D("0.02"), "B": D("0.02"), "A": D("0.01")}


@pytest.mark.parametrize("total", ["0.01", "0.02", "1.00", "10.01", "99.99", "1234.57"])
@pytest.mark.parametrize("count", [1, 2, 3, 6, 7])
def test_equal_split_shares_differ_by_at_most_one_cent(total, count):
    member_ids = [f"M{i}" for i in range(count)]
    result = split_equally(total, member_ids)
    values = list(result.values())
    assert sum(values) == D(total)
    assert max(values) - min(values) <= D("0.01")


def test_equal_split_display_percentages():
    shares = calculate_split(100, "equal", [{"member_id": "A"}, {"member_id": "B"}, {"member_id": "C"}])
    assert [s.percentage for s in shares] == [D("33.34"), D("33.33"), D("33.33")]


# percentage ----------------------------------------------------------------

def test_percentage_split_without_residual():
    shares = calculate_split("100.00", "percentage", [
        {"member_id": "A", "percentage": 60},
        {"member_id": "B", "percentage": 25},
        {"member_id": "C", "percentage": 15},
    ])
    assert _amounts(shares) == [D("60.00"), D("25.00"), D("15.00")]


def test_percentage_split_residual_goes_to_largest_remainder():
    result = split_by_percentage(D("10.00"), {
        "A": D("33.333"),
        "B": D("33.333"),
        "C": D("33.334"),
    })
    assert result == {"A": D("3.33"), "B": D("3.33"), "C": D("3.34")}


def test_percentage_split_remainder_tie_broken_by_member_id():
    result = split_by_percentage(D("0.05"), {"B": 50, "A": 50})
    assert result == {"B": D("0.02"), "A": D("0.03")}


def test_percentage_split_within_tolerance_still_sums_to_total():
    result = split_by_percentage(D("100.00"), {"A": "33.33", "B": "33.33", "C": "33.33"})
    assert sum(result.values()) == D("100.00")


def test_percentage_split_sum_mismatch():
    with pytest.raises(InvalidSplit) as excinfo:
        split_by_percentage(D("100"), {"A": 50, "B": 40})
    assert _reason(excinfo) is SplitErrorReason.SUM_MISMATCH


def test_percentage_split_negative_percentage():
    with pytest.raises(InvalidSplit) as excinfo:
        split_by_percentage(D("100"), {"A": -10, "B": 110})
    assert _reason(excinfo) is SplitErrorReason.NEGATIVE_SHARE


def test_percentage_over_hundred_is_sum_mismatch():
    with pytest.raises(InvalidSplit) as excinfo:
        split_by_percentage(D("100"), {"A": 150})
    assert _reason(excinfo) is SplitErrorReason.SUM_MISMATCH


# exact ---------------------------------------------------------------------

def test_exact_split_sum_mismatch_is_not_corrected():
    with pytest.raises(InvalidSplit) as excinfo:
        calculate_split("100.00", "exact", [
            {"member_id": "A", "amount": "50.00"},
            {"member_id": "B", "amount": "49.00"},
        ])
    assert _reason(excinfo) is SplitErrorReason.SUM_MISMATCH


def test_exact_split_within_tolerance_keeps_amounts():
    result = split_by_exact_amounts(D("100.00"), {"A": "50.00", "B": "50.01"})
    assert result == {"A": D("50.00"), "B": D("50.01")}


def test_exact_split_negative_amount():
    with pytest.raises(InvalidSplit) as excinfo:
        split_by_exact_amounts(D("100.00"), {"A": "110.00", "B": "-10.00"})
    assert _reason(excinfo) is SplitErrorReason.NEGATIVE_SHARE


# shares --------------------------------------------------------------------

def test_share_split_uses_largest_remainder():
    result = split_by_shares(D("100.00"), {"A": 2, "B": 1})
    assert result == {"A": D("66.67"), "B": D("33.33")}


def test_share_split_records_share_counts():
    shares = calculate_split("30.00", "shares", [
        {"member_id": "A", "shares": 1},
        {"member_id": "B", "shares": 2},
    ])
    assert _amounts(shares) == [D("10.00"), D("20.00")]
    assert [s.share_count for s in shares] == [1, 2]


def test_share_split_allows_zero_count_for_some_members():
    result = split_by_shares(D("10.00"), {"A": 0, "B": 1})
    assert result == {"A": D("0.00"), "B": D("10.00")}


@pytest.mark.parametrize("shares, reason", [
    ({"A": 0, "B": 0}, SplitErrorReason.INVALID_SHARE_COUNT),
    ({"A": 1.5, "B": 1}, SplitErrorReason.INVALID_SHARE_COUNT),
    ({"A": -1, "B": 2}, SplitErrorReason.NEGATIVE_SHARE),
])
def test_share_split_rejects_bad_counts(shares, reason):
    with pytest.raises(InvalidSplit) as excinfo:
        split_by_shares(D("10.00"), shares)
    assert _reason(excinfo) is reason


# calculate_split -----------------------------------------------------------

@pytest.mark.parametrize("method", ["equal", "percentage", "exact", "shares"])
def test_calculate_split_rejects_empty_participants(method):
    with pytest.raises(InvalidSplit) as excinfo:
        calculate_split("10.00", method, [])
    assert _reason(excinfo) is SplitErrorReason.NO_PARTICIPANTS


def test_calculate_split_rejects_duplicates():
    with pytest.raises(InvalidSplit) as excinfo:
        calculate_split("10.00", "shares", [
            {"member_id": "A", "shares": 1},
            {"member_id": "A", "shares": 2},
        ])
    assert _reason(excinfo) is SplitErrorReason.DUPLICATE_PARTICIPANT


@pytest.mark.parametrize("total", ["0", "-5.00"])
def test_calculate_split_rejects_non_positive_total(total):
    with pytest.raises(InvalidSplit) as excinfo:
        calculate_split(total, "equal", [{"member_id": "A"}])
    assert _reason(excinfo) is SplitErrorReason.NON_POSITIVE_TOTAL


def test_calculate_split_requires_method_input():
    with pytest.raises(ValueError, match="percentage"):
        calculate_split("10.00", "percentage", [{"member_id": "A"}])


def test_calculate_split_rejects_unknown_method():
    with pytest.raises(ValueError):
        calculate_split("10.00", "halves", [{"member_id": "A"}])


@pytest.mark.parametrize("method, extra", [
    ("equal", [{}, {}, {}]),
    ("percentage", [{"percentage": 50}, {"percentage": 30}, {"percentage": 20}]),
    ("exact", [{"amount": "40.00"}, {"amount": "40.00"}, {"amount": "17.77"}]),
    ("shares", [{"shares": 3}, {"shares": 2}, {"shares": 2}]),
])
def test_every_method_produces_a_valid_expense(method, extra):
    participants = [dict(member_id=m, **e) for m, e in zip(["A", "B", "C"], extra)]
    shares = calculate_split("97.77", method, participants)
    expense = _expense("97.77", shares, method=method)
    validate_expense(expense)
    assert abs(expense.shares_total - expense.total_amount) <= D("0.01")


# validate_expense ----------------------------------------------------------

def test_validate_expense_accepts_valid_expense():
    shares = [ParticipantShare("A", "50.00", "50"), ParticipantShare("B", "50.00", "50")]
    assert validate_expense(_expense("100.00", shares)) is None


@pytest.mark.parametrize("total, shares, reason", [
    ("0.00", [], SplitErrorReason.NON_POSITIVE_TOTAL),
    ("10.00", [], SplitErrorReason.NO_PARTICIPANTS),
    ("10.00", [ParticipantShare("A", "5.00"), ParticipantShare("A", "5.00")],
     SplitErrorReason.DUPLICATE_PARTICIPANT),
    ("10.00", [ParticipantShare("A", "15.00"), ParticipantShare("B", "-5.00")],
     SplitErrorReason.NEGATIVE_SHARE),
    ("10.00", [ParticipantShare("A", "5.00"), ParticipantShare("B", "4.00")],
     SplitErrorReason.SUM_MISMATCH),
    ("10.00", [ParticipantShare("A", "10.00", "150")], SplitErrorReason.SUM_MISMATCH),
])
def test_validate_expense_error_kinds(total, shares, reason):
    with pytest.raises(InvalidSplit) as excinfo:
        validate_expense(_expense(total, shares))
    assert _reason(excinfo) is reason


def test_invalid_split_message_names_reason():
    with pytest.raises(InvalidSplit, match="SumMismatch"):
        validate_expense(_expense("10.00", [ParticipantShare("A", "1.00")]))


# recalculate_split ---------------------------------------------------------

def _split_expense(total, method, participants):
    return _expense(total, calculate_split(total, method, participants), method=method)


def test_recalculate_equal_split():
    expense = _split_expense("100.00", "equal", [{"member_id": "A"}, {"member_id": "B"}, {"member_id": "C"}])
    assert _amounts(recalculate_split(expense, "90.00")) == [D("30.00")] * 3


def test_recalculate_percentage_split_keeps_percentages():
    expense = _split_expense("100.00", "percentage", [
        {"member_id": "A", "percentage": 60},
        {"member_id": "B", "percentage": 25},
        {"member_id": "C", "percentage": 15},
    ])
    assert _amounts(recalculate_split(expense, "200.00")) == [D("120.00"), D("50.00"), D("30.00")]


def test_recalculate_seven_way_percentage_split():
    # display percentages round to 14.29 each and sum to 100.03
    participants = [
        {"member_id": member_id, "percentage": percentage}
        for member_id, percentage in zip("ABCDEFG", ["14.29"] * 3 + ["14.28"] * 4)
    ]
    expense = _split_expense("7.00", "percentage", participants)
    assert _amounts(expense.shares) == [D("1.00")] * 7
    assert sum(s.percentage for s in expense.shares) == D("100.03")

    shares = recalculate_split(expense, "14.00")
    assert _amounts(shares) == [D("2.00")] * 7
    assert [s.input_percentage for s in shares] == [D("14.29")] * 3 + [D("14.28")] * 4
    validate_expense(_expense("14.00", shares, method=SplitMethod.PERCENTAGE))


def test_recalculate_percentage_split_without_stored_input():
    shares = [ParticipantShare("A", "60.00", "60.00"), ParticipantShare("B", "40.00", "40.00")]
    expense = _expense("100.00", shares, method=SplitMethod.PERCENTAGE)
    assert _amounts(recalculate_split(expense, "50.00")) == [D("30.00"), D("20.00")]


def test_recalculate_share_split_keeps_counts():
    expense = _split_expense("99.00", "shares", [
        {"member_id": "A", "shares": 2},
        {"member_id": "B", "shares": 1},
    ])
    assert _amounts(recalculate_split(expense, "30.00")) == [D("20.00"), D("10.00")]


def test_recalculate_exact_split_scales_amounts():
    expense = _split_expense("100.00", "exact", [
        {"member_id": "A", "amount": "60.00"},
        {"member_id": "B", "amount": "40.00"},
    ])
    shares = recalculate_split(expense, "50.00")
    assert _amounts(shares) == [D("30.00"), D("20.00")]
    assert [s.member_id for s in shares] == ["A", "B"]


def test_can_modify_participants():
    assert can_modify_participants("equal")
    assert can_modify_participants(SplitMethod.SHARES)
    assert not can_modify_participants("percentage")
    assert not can_modify_participants("exact")
