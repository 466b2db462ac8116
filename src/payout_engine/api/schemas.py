"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None


# ============================================================================
# Payroll rule schemas
# ============================================================================


class PayrollRuleCreate(BaseModel):
    """Schema for creating a payroll rule."""

    name: str
    role: str | None = None
    department: str | None = None
    employee_id: UUID | None = None
    agent_id: UUID | None = None
    service_id: UUID | None = None
    rate_type: str
    amount: Decimal = Field(ge=0)
    is_percentage: bool = False
    is_active: bool = True
    priority: int = 0
    effective_date: date | None = None
    expiration_date: date | None = None


class PayrollRuleUpdate(BaseModel):
    """Schema for editing a payroll rule. Omitted fields are left unchanged."""

    name: str | None = None
    role: str | None = None
    department: str | None = None
    employee_id: UUID | None = None
    agent_id: UUID | None = None
    service_id: UUID | None = None
    rate_type: str | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    is_percentage: bool | None = None
    is_active: bool | None = None
    priority: int | None = None
    effective_date: date | None = None
    expiration_date: date | None = None


class PayrollRuleResponse(BaseModel):
    """Schema for payroll rule response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    role: str | None = None
    department: str | None = None
    employee_id: UUID | None = None
    agent_id: UUID | None = None
    service_id: UUID | None = None
    rate_type: str
    amount: Decimal
    is_percentage: bool
    is_active: bool
    priority: int
    effective_date: date
    expiration_date: date | None = None
    created_at: datetime
    updated_at: datetime


class RuleResolveRequest(BaseModel):
    """Schema for previewing which rule applies to a payout."""

    employee_id: UUID | None = None
    agent_id: UUID | None = None
    service_id: UUID | None = None
    role: str | None = None
    department: str | None = None
    on_date: date | None = None
    base_amount: Decimal | None = Field(default=None, ge=0)
    hours_worked: Decimal | None = Field(default=None, ge=0)


class RuleResolveResponse(BaseModel):
    """Schema for rule resolution preview."""

    rule: PayrollRuleResponse | None = None
    final_amount: Decimal | None = None
    calculated: bool = False


# ============================================================================
# Payroll transaction schemas
# ============================================================================


class PayrollTransactionCreate(BaseModel):
    """Schema for creating a payroll transaction."""

    employee_id: UUID | None = None
    agent_id: UUID | None = None
    service_id: UUID | None = None
    role: str | None = None
    department: str | None = None
    amount: Decimal
    hours_worked: Decimal | None = None
    service_value: Decimal | None = None
    final_amount: Decimal | None = None
    period_start: date
    period_end: date
    notes: str | None = None


class PayrollTransactionUpdate(BaseModel):
    """Schema for editing a payroll transaction."""

    amount: Decimal | None = None
    hours_worked: Decimal | None = None
    service_value: Decimal | None = None
    final_amount: Decimal | None = None
    period_start: date | None = None
    period_end: date | None = None
    service_id: UUID | None = None
    notes: str | None = None


class PayrollTransactionResponse(BaseModel):
    """Schema for payroll transaction response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID | None = None
    agent_id: UUID | None = None
    service_id: UUID | None = None
    payroll_rule_id: UUID | None = None
    amount: Decimal
    calculated_amount: Decimal | None = None
    final_amount: Decimal
    hours_worked: Decimal | None = None
    service_value: Decimal | None = None
    period_start: date
    period_end: date
    status: str
    approved_by: str | None = None
    approved_at: datetime | None = None
    payment_method: str | None = None
    payment_date: datetime | None = None
    payment_reference: str | None = None
    settlement_status: str | None = None
    failure_reason: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class PayrollTransactionListResponse(BaseModel):
    """Schema for listing payroll transactions."""

    items: list[PayrollTransactionResponse]
    total: int


class AutoPayoutRequest(BaseModel):
    """Schema for generating a payout from a paid invoice or completed job."""

    employee_id: UUID | None = None
    agent_id: UUID | None = None
    service_id: UUID | None = None
    service_value: Decimal | None = None
    hours_worked: Decimal | None = None
    role: str | None = None
    department: str | None = None
    on_date: date | None = None
    notes: str | None = None


class SummaryResponse(BaseModel):
    """Schema for payroll totals by status."""

    pending_count: int
    processed_count: int
    paid_count: int
    failed_count: int
    pending_total: Decimal
    processed_total: Decimal
    paid_total: Decimal
    grand_total: Decimal


# ============================================================================
# Approval and payment schemas
# ============================================================================


class ApprovalRequest(BaseModel):
    """Schema for approving a transaction."""

    approver_id: str = Field(min_length=1)


class BulkApprovalRequest(BaseModel):
    """Schema for approving several transactions."""

    transaction_ids: list[UUID] = Field(min_length=1)
    approver_id: str = Field(min_length=1)


class BulkApprovalItemResponse(BaseModel):
    """Outcome for one id in a bulk approval."""

    transaction_id: UUID
    succeeded: bool
    error: str | None = None


class BulkApprovalResponse(BaseModel):
    """Schema for bulk approval response."""

    approved_count: int
    failed_count: int
    items: list[BulkApprovalItemResponse]


class PaymentRequest(BaseModel):
    """Schema for paying a processed transaction."""

    payment_method: str
    payment_reference: str | None = None


class PaymentMethodResponse(BaseModel):
    """Schema for a payment method's display details."""

    method: str
    name: str
    description: str
    processing_time: str
    fees: str
    supported: bool


# ============================================================================
# Notification schemas
# ============================================================================


class NotificationResponse(BaseModel):
    """Schema for a payout notification."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID | None = None
    agent_id: UUID | None = None
    payroll_transaction_id: UUID | None = None
    notification_type: str
    title: str
    message: str
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    """Schema for listing notifications."""

    items: list[NotificationResponse]
    unread_count: int
