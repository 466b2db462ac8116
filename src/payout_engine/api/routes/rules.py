"""Payroll rule API endpoints."""

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from payout_engine.api.dependencies import DbSession, RuleServiceDep
from payout_engine.api.schemas import (
    ErrorResponse,
    PayrollRuleCreate,
    PayrollRuleResponse,
    PayrollRuleUpdate,
    RuleResolveRequest,
    RuleResolveResponse,
)
from payout_engine.calculators import RuleResolver, calculate_payout
from payout_engine.store import PayrollStore
from payout_engine.types import PayoutContext

router = APIRouter(prefix="/payroll-rules", tags=["payroll-rules"])


# ============================================================================
# Rule CRUD
# ============================================================================


@router.get("", response_model=list[PayrollRuleResponse])
async def list_rules(
    rules: RuleServiceDep,
    active_only: Annotated[bool, Query()] = False,
) -> list[PayrollRuleResponse]:
    """List payroll rules, highest priority first."""
    return [
        PayrollRuleResponse.model_validate(rule)
        for rule in await rules.list_rules(active_only=active_only)
    ]


@router.post(
    "",
    response_model=PayrollRuleResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_rule(
    db: DbSession,
    rules: RuleServiceDep,
    payload: PayrollRuleCreate,
) -> PayrollRuleResponse:
    """Create a payroll rule."""
    fields = payload.model_dump(exclude_none=True)
    rule = await rules.create_rule(**fields)
    await db.commit()
    return PayrollRuleResponse.model_validate(rule)


@router.get(
    "/{rule_id}",
    response_model=PayrollRuleResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_rule(
    rules: RuleServiceDep,
    rule_id: Annotated[UUID, Path()],
) -> PayrollRuleResponse:
    """Get a payroll rule by ID."""
    return PayrollRuleResponse.model_validate(await rules.get_rule(rule_id))


@router.patch(
    "/{rule_id}",
    response_model=PayrollRuleResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def update_rule(
    db: DbSession,
    rules: RuleServiceDep,
    rule_id: Annotated[UUID, Path()],
    payload: PayrollRuleUpdate,
) -> PayrollRuleResponse:
    """Edit a payroll rule. Omitted fields are left unchanged."""
    rule = await rules.update_rule(rule_id, **payload.model_dump(exclude_unset=True))
    await db.commit()
    return PayrollRuleResponse.model_validate(rule)


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_rule(
    db: DbSession,
    rules: RuleServiceDep,
    rule_id: Annotated[UUID, Path()],
) -> None:
    """Delete a payroll rule. Transactions keep their amounts."""
    await rules.delete_rule(rule_id)
    await db.commit()


# ============================================================================
# Resolution preview
# ============================================================================


@router.post("/resolve", response_model=RuleResolveResponse)
async def resolve_rule(
    db: DbSession,
    payload: RuleResolveRequest,
) -> RuleResolveResponse:
    """Show which rule applies to a payout context and what it would pay."""
    context = PayoutContext(
        on_date=payload.on_date or date.today(),
        employee_id=payload.employee_id,
        agent_id=payload.agent_id,
        service_id=payload.service_id,
        role=payload.role,
        department=payload.department,
    )
    rule = await RuleResolver(PayrollStore(db)).resolve(context)
    if rule is None:
        return RuleResolveResponse()

    calculation = calculate_payout(
        rule,
        payload.base_amount if payload.base_amount is not None else Decimal("0"),
        payload.hours_worked,
    )
    return RuleResolveResponse(
        rule=PayrollRuleResponse.model_validate(rule),
        final_amount=calculation.final_amount if calculation.calculated else None,
        calculated=calculation.calculated,
    )
