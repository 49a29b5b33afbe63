"""
Group Ledger - FastAPI Web Backend

This module is the HTTP boundary of the group expense ledger. It is the
caller of the balance engine and settlement planner: it loads data from
Firestore, invokes them, and turns their errors into HTTP responses.

Features:
    - RESTful API for groups, members, expenses and payments
    - Split validation when expenses are created or edited
    - Fresh balances and settlement plans on every request
    - Optional caching of results back to Firestore

Endpoints:
    POST   /groups                                    - Create a group
    POST   /groups/{group_id}/members                 - Add member
    GET    /groups/{group_id}/members                 - List members
    POST   /groups/{group_id}/expenses                - Add expense
    GET    /groups/{group_id}/expenses                - List expenses (filters)
    GET    /groups/{group_id}/expenses/{expense_id}   - Get expense
    PUT    /groups/{group_id}/expenses/{expense_id}   - Edit expense
    DELETE /groups/{group_id}/expenses/{expense_id}   - Delete expense
    POST   /groups/{group_id}/payments                - Record payment
    GET    /groups/{group_id}/payments                - List payments
    DELETE /groups/{group_id}/payments/{payment_id}   - Delete payment
    GET    /groups/{group_id}/balances                - Current balances
    GET    /groups/{group_id}/settlements             - Settlement plan
    GET    /groups/{group_id}/members/{member_id}/explanation
    GET    /groups/{group_id}/explanations            - All members explained
    POST   /groups/{group_id}/recompute               - Recompute and cache
    GET    /groups/{group_id}/summary                 - Cached results

Usage:
    uvicorn groupledger.main:app --reload
"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from groupledger.balances import compute_balances, is_group_settled
from groupledger.config import settings
from groupledger.errors import (
    CurrencyMismatch,
    InconsistentExpense,
    InvalidSplit,
    LedgerError,
    UnbalancedInput,
    UnknownMemberReference
)
from groupledger.expenses import (
    add_expense,
    delete_expense,
    filter_expenses,
    get_expense,
    get_expenses,
    update_expense
)
from groupledger.firebase_store import load_cached_results
from groupledger.groups import create_group, require_group
from groupledger.ledger import load_group_snapshot, recompute_group
from groupledger.members import add_member, get_members
from groupledger.models import Balance, Expense, Payment, Settlement, SplitMethod
from groupledger.payments import add_payment, delete_payment, filter_payments, get_payments
from groupledger.settlement import plan_settlement
from groupledger.utils import explain_all_members, explain_member_balance

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

INTEGRITY_MESSAGE = "Balances unavailable, please contact support"


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

class GroupCreate(BaseModel):
    """Request model for creating a group."""
    name: str = Field(..., min_length=1, description="Group name")
    currency: Optional[str] = Field(None, description="ISO 4217 code (defaults to DEFAULT_CURRENCY)")


class GroupResponse(BaseModel):
    group_id: str
    name: str
    currency: str


class MemberCreate(BaseModel):
    """Request model for adding a member."""
    display_name: str = Field(..., min_length=1, description="Member display name")


class MemberResponse(BaseModel):
    member_id: str
    display_name: str


class ParticipantInput(BaseModel):
    """One participant of an expense with the input its split method needs."""
    member_id: str = Field(..., min_length=1)
    percentage: Optional[Decimal] = Field(None, description="Percentage splits")
    amount: Optional[Decimal] = Field(None, description="Exact splits")
    shares: Optional[int] = Field(None, description="Share splits")


class ExpenseCreate(BaseModel):
    """Request model for adding an expense."""
    payer_id: str = Field(..., min_length=1, description="Member ID of payer")
    total_amount: Decimal = Field(..., description="Expense total")
    split_method: SplitMethod = Field(SplitMethod.EQUAL, description="equal, percentage, exact or shares")
    participants: list[ParticipantInput] = Field(..., description="Participants and their split input")
    currency: Optional[str] = Field(None, description="Must match the group currency")
    description: Optional[str] = None
    date: Optional[str] = Field(None, pattern=DATE_PATTERN, description="Expense date (YYYY-MM-DD)")


class ExpenseUpdate(BaseModel):
    """Request model for editing an expense; omitted fields keep their value."""
    payer_id: Optional[str] = None
    total_amount: Optional[Decimal] = None
    split_method: Optional[SplitMethod] = None
    participants: Optional[list[ParticipantInput]] = None
    description: Optional[str] = None
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)


class ShareResponse(BaseModel):
    member_id: str
    amount: Decimal
    percentage: Decimal
    share_count: Optional[int]
    input_percentage: Optional[Decimal] = None


class ExpenseResponse(BaseModel):
    expense_id: str
    group_id: str
    payer_id: str
    total_amount: Decimal
    currency: str
    split_method: SplitMethod
    shares: list[ShareResponse]
    description: Optional[str]
    date: Optional[str]


class PaymentCreate(BaseModel):
    """Request model for recording a payment."""
    payer_id: str = Field(..., min_length=1)
    recipient_id: str = Field(..., min_length=1)
    amount: Decimal
    currency: Optional[str] = None
    note: Optional[str] = None
    date: Optional[str] = Field(None, pattern=DATE_PATTERN)


class PaymentResponse(BaseModel):
    payment_id: str
    group_id: str
    payer_id: str
    recipient_id: str
    amount: Decimal
    currency: str
    note: Optional[str]
    date: Optional[str]


class BalanceResponse(BaseModel):
    member_id: str
    display_name: str
    amount: Decimal
    currency: str
    total_paid: Decimal
    total_owed: Decimal
    payments_sent: Decimal
    payments_received: Decimal
    status: str


class SettlementResponse(BaseModel):
    payer_id: str
    payer_name: str
    recipient_id: str
    recipient_name: str
    amount: Decimal
    currency: str
    description: str


class BalancesResponse(BaseModel):
    group_id: str
    currency: str
    balances: list[BalanceResponse]
    is_settled: bool


class SettlementsResponse(BaseModel):
    group_id: str
    currency: str
    settlements: list[SettlementResponse]


class RecomputeResponse(BaseModel):
    group_id: str
    currency: str
    balances: list[BalanceResponse]
    settlements: list[SettlementResponse]
    is_settled: bool


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Group Ledger",
    description="Group expense splitting: balances and settlement plans",
    version="1.0.0"
)


# =============================================================================
# Helper Functions
# =============================================================================

def _http_error(e: Exception) -> HTTPException:
    """
    Map an exception raised below the API to an HTTPException.

    InconsistentExpense and UnbalancedInput mean stored data is corrupt:
    they are logged as data-integrity bugs and reported without detail.
    """
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, InvalidSplit):
        return HTTPException(status_code=400, detail={
            "error": "InvalidSplit",
            "reason": e.reason.value,
            "message": e.message
        })
    if isinstance(e, (InconsistentExpense, UnbalancedInput)):
        logger.error("Data integrity failure (%s): %s", type(e).__name__, e.message)
        return HTTPException(status_code=500, detail=INTEGRITY_MESSAGE)
    if isinstance(e, (UnknownMemberReference, CurrencyMismatch)):
        return HTTPException(status_code=409, detail={"error": type(e).__name__, "message": e.message})
    if isinstance(e, LedgerError):
        return HTTPException(status_code=400, detail=e.message)
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e).strip("'\""))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, RuntimeError):
        return HTTPException(status_code=503, detail=str(e))
    logger.exception("Unexpected error")
    return HTTPException(status_code=500, detail=str(e))


def _expense_response(expense: Expense) -> ExpenseResponse:
    return ExpenseResponse(**expense.to_dict())


def _payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(**payment.to_dict())


def _balance_response(balance: Balance) -> BalanceResponse:
    return BalanceResponse(**balance.to_dict())


def _settlement_response(settlement: Settlement) -> SettlementResponse:
    return SettlementResponse(description=settlement.description, **settlement.to_dict())


def _participant_dicts(participants: list[ParticipantInput]) -> list[dict]:
    return [p.model_dump(exclude_none=True) for p in participants]


# =============================================================================
# API Endpoints
# =============================================================================

@app.post("/groups", response_model=GroupResponse, status_code=201)
async def create_new_group(group_data: GroupCreate):
    """Create a new group with its currency."""
    try:
        group = create_group(group_data.name, group_data.currency)
        return GroupResponse(**group)
    except Exception as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/members", response_model=MemberResponse, status_code=201)
async def add_group_member(group_id: str, member_data: MemberCreate):
    """Add a member to a group."""
    try:
        member = add_member(group_id, member_data.display_name)
        return MemberResponse(**member.to_dict())
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/members", response_model=list[MemberResponse])
async def list_group_members(group_id: str):
    try:
        require_group(group_id)
        return [MemberResponse(**m.to_dict()) for m in get_members(group_id)]
    except Exception as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/expenses", response_model=ExpenseResponse, status_code=201)
async def add_group_expense(group_id: str, expense_data: ExpenseCreate):
    """
    Add an expense to a group.

    Request flow:
        1. Validate request shape using the Pydantic model
        2. Compute the split and validate it (add_expense)
        3. Return the stored expense with its shares
    """
    try:
        expense = add_expense(
            group_id=group_id,
            payer_id=expense_data.payer_id,
            total_amount=expense_data.total_amount,
            split_method=expense_data.split_method,
            participants=_participant_dicts(expense_data.participants),
            currency=expense_data.currency,
            description=expense_data.description,
            date=expense_data.date
        )
        return _expense_response(expense)
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/expenses", response_model=list[ExpenseResponse])
async def list_group_expenses(
    group_id: str,
    member_id: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None
):
    """
    List live expenses, optionally narrowed by member, date range or amount.

    member_id matches the payer and the participants; dates are inclusive.
    """
    try:
        require_group(group_id)
        expenses = filter_expenses(
            get_expenses(group_id),
            member_id=member_id,
            start_date=start_date,
            end_date=end_date,
            min_amount=min_amount,
            max_amount=max_amount
        )
        return [_expense_response(e) for e in expenses]
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/expenses/{expense_id}", response_model=ExpenseResponse)
async def get_group_expense(group_id: str, expense_id: str):
    try:
        require_group(group_id)
        expense = get_expense(group_id, expense_id)
        if expense is None:
            raise LookupError(f"expense '{expense_id}' does not exist in group {group_id}")
        return _expense_response(expense)
    except Exception as e:
        raise _http_error(e)


@app.put("/groups/{group_id}/expenses/{expense_id}", response_model=ExpenseResponse)
async def edit_group_expense(group_id: str, expense_id: str, expense_data: ExpenseUpdate):
    """Edit an expense; the result is validated again before it is stored."""
    try:
        participants = None
        if expense_data.participants is not None:
            participants = _participant_dicts(expense_data.participants)
        expense = update_expense(
            group_id=group_id,
            expense_id=expense_id,
            total_amount=expense_data.total_amount,
            payer_id=expense_data.payer_id,
            split_method=expense_data.split_method,
            participants=participants,
            description=expense_data.description,
            date=expense_data.date
        )
        return _expense_response(expense)
    except Exception as e:
        raise _http_error(e)


@app.delete("/groups/{group_id}/expenses/{expense_id}", status_code=204)
async def remove_group_expense(group_id: str, expense_id: str):
    try:
        delete_expense(group_id, expense_id)
    except Exception as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/payments", response_model=PaymentResponse, status_code=201)
async def add_group_payment(group_id: str, payment_data: PaymentCreate):
    """Record a direct payment between two members."""
    try:
        payment = add_payment(
            group_id=group_id,
            payer_id=payment_data.payer_id,
            recipient_id=payment_data.recipient_id,
            amount=payment_data.amount,
            currency=payment_data.currency,
            note=payment_data.note,
            date=payment_data.date
        )
        return _payment_response(payment)
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/payments", response_model=list[PaymentResponse])
async def list_group_payments(group_id: str, member_id: Optional[str] = None):
    """List live payments, optionally only those a member sent or received."""
    try:
        require_group(group_id)
        return [_payment_response(p) for p in filter_payments(get_payments(group_id), member_id)]
    except Exception as e:
        raise _http_error(e)


@app.delete("/groups/{group_id}/payments/{payment_id}", status_code=204)
async def remove_group_payment(group_id: str, payment_id: str):
    try:
        delete_payment(group_id, payment_id)
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/balances", response_model=BalancesResponse)
async def get_group_balances(group_id: str):
    """Compute every member's balance from the group's current data."""
    try:
        snapshot = load_group_snapshot(group_id)
        balances = compute_balances(
            snapshot.members, snapshot.expenses, snapshot.payments, currency=snapshot.currency
        )
        return BalancesResponse(
            group_id=group_id,
            currency=snapshot.currency,
            balances=[_balance_response(b) for b in balances],
            is_settled=is_group_settled(balances)
        )
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/settlements", response_model=SettlementsResponse)
async def get_group_settlements(group_id: str):
    """Compute the suggested transfers that settle the group."""
    try:
        snapshot = load_group_snapshot(group_id)
        balances = compute_balances(
            snapshot.members, snapshot.expenses, snapshot.payments, currency=snapshot.currency
        )
        settlements = plan_settlement(balances)
        return SettlementsResponse(
            group_id=group_id,
            currency=snapshot.currency,
            settlements=[_settlement_response(s) for s in settlements]
        )
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/members/{member_id}/explanation")
async def explain_group_member(group_id: str, member_id: str):
    """Breakdown of the expenses and payments behind one member's balance."""
    try:
        snapshot = load_group_snapshot(group_id)
        balances = compute_balances(
            snapshot.members, snapshot.expenses, snapshot.payments, currency=snapshot.currency
        )
        return explain_member_balance(
            member_id, snapshot.members, snapshot.expenses, snapshot.payments, balances
        )
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/explanations")
async def explain_group_members(group_id: str):
    """Breakdown for every member of the group, ordered by member_id."""
    try:
        snapshot = load_group_snapshot(group_id)
        balances = compute_balances(
            snapshot.members, snapshot.expenses, snapshot.payments, currency=snapshot.currency
        )
        return explain_all_members(snapshot.members, snapshot.expenses, snapshot.payments, balances)
    except Exception as e:
        raise _http_error(e)


@app.post("/groups/{group_id}/recompute", response_model=RecomputeResponse)
async def recompute_group_results(group_id: str):
    """
    Recompute balances and settlements, caching them when PERSIST_RESULTS is on.

    Meant to be called after an expense or payment change notification.
    """
    try:
        result = recompute_group(group_id)
        return RecomputeResponse(
            group_id=result["group_id"],
            currency=result["currency"],
            balances=[_balance_response(b) for b in result["balances"]],
            settlements=[_settlement_response(s) for s in result["settlements"]],
            is_settled=result["is_settled"]
        )
    except Exception as e:
        raise _http_error(e)


@app.get("/groups/{group_id}/summary", response_model=RecomputeResponse)
async def get_cached_summary(group_id: str):
    """Results stored by the last /recompute call."""
    try:
        group = require_group(group_id)
        cached = load_cached_results(group_id)
        if not cached["balances"]:
            raise HTTPException(
                status_code=404,
                detail="No results found. Call /groups/{group_id}/recompute first."
            )
        return RecomputeResponse(
            group_id=group_id,
            currency=group["currency"],
            balances=[_balance_response(b) for b in cached["balances"]],
            settlements=[_settlement_response(s) for s in cached["settlements"]],
            is_settled=is_group_settled(cached["balances"])
        )
    except Exception as e:
        raise _http_error(e)


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Group Ledger"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("groupledger.main:app", host="127.0.0.1", port=8000, reload=True)
