"""
Pydantic models for request bodies.

Money fields are decimal dollars on the way in; the store converts them to
integer cents.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

# Auth


class LoginRequest(BaseModel):
    username: str
    password: str


class SetupPasswordRequest(BaseModel):
    token: str
    password: str


class PolicyAcceptRequest(BaseModel):
    policy_ids: list[int]


# Clients


class ClientCreate(BaseModel):
    client_code: str
    client_name: str
    client_type: Optional[str] = None
    logo_url: Optional[str] = None


class ClientUpdate(BaseModel):
    client_code: Optional[str] = None
    client_name: Optional[str] = None
    client_type: Optional[str] = None
    logo_url: Optional[str] = None


class BankAccountCreate(BaseModel):
    account_name: str
    account_type: str = "Operating"
    bank_name: Optional[str] = None
    account_last4: Optional[str] = None
    routing_last4: Optional[str] = None


# Batches and donations


class BatchCreate(BaseModel):
    client_id: int
    entry_mode: str = "Manual"
    payment_category: str = "Donations"
    zeros_type: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = None
    account_id: Optional[int] = None
    default_gift_method: Optional[str] = "Check"
    default_gift_platform: Optional[str] = "Cage"
    default_transaction_type: Optional[str] = "Contribution"
    default_gift_year: Optional[int] = None
    default_gift_quarter: Optional[str] = "Q1"
    default_gift_type: Optional[str] = "Individual/Trust/IRA"


class BatchStatusUpdate(BaseModel):
    status: str


class QuickAddDonation(BaseModel):
    amount: float
    check_number: Optional[str] = None
    scan_string: Optional[str] = None


class DonationInput(BaseModel):
    """Keyed donation fields. Unset fields fall back to the batch defaults."""

    amount: Optional[float] = None
    gift_fee: Optional[float] = None
    gift_pledge_amount: Optional[float] = None
    check_number: Optional[str] = None
    scan_string: Optional[str] = None
    gift_method: Optional[str] = None
    gift_platform: Optional[str] = None
    gift_type: Optional[str] = None
    transaction_type: Optional[str] = None
    gift_year: Optional[int] = None
    gift_quarter: Optional[str] = None
    gift_date: Optional[str] = None
    receipt_year: Optional[str] = None
    receipt_quarter: Optional[str] = None
    donor_prefix: Optional[str] = None
    donor_first_name: Optional[str] = None
    donor_middle_name: Optional[str] = None
    donor_last_name: Optional[str] = None
    donor_suffix: Optional[str] = None
    donor_address: Optional[str] = None
    donor_city: Optional[str] = None
    donor_state: Optional[str] = None
    donor_zip: Optional[str] = None
    donor_employer: Optional[str] = None
    donor_occupation: Optional[str] = None
    donor_phone: Optional[str] = None
    donor_email: Optional[str] = None
    organization_name: Optional[str] = None
    gift_custodian: Optional[str] = None
    gift_conduit: Optional[str] = None
    comment: Optional[str] = None
    campaign_id: Optional[str] = None
    routing_number: Optional[str] = None
    account_number: Optional[str] = None
    check_sequence_number: Optional[str] = None
    aux_on_us: Optional[str] = None
    epc: Optional[str] = None
    is_inactive: Optional[bool] = None
    resolution_status: Optional[str] = None


class AcknowledgeRequest(BaseModel):
    type: str
    sent: bool = True


# People


class DonorCreate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    organization_name: Optional[str] = None


class DonorAlertUpdate(BaseModel):
    message: Optional[str] = None


class NoteCreate(BaseModel):
    content: str


class TaskCreate(BaseModel):
    description: str
    assigned_to: Optional[int] = None
    due_date: Optional[str] = None


class TaskUpdate(BaseModel):
    is_completed: bool


class PledgeCreate(BaseModel):
    amount: float
    campaign_id: Optional[str] = None


class MergeRequest(BaseModel):
    primary_id: int
    secondary_ids: list[int]


class BatchIdsRequest(BaseModel):
    batch_ids: list[int]


class BulkAcknowledgeRequest(BaseModel):
    ids: list[int]
    type: str = "ThankYou"


class ResolveRequest(BaseModel):
    action: str
    candidate_id: Optional[int] = None


# Reconciliation


class PeriodCreate(BaseModel):
    client_id: int
    start_date: str
    end_date: str


class StatementUpdate(BaseModel):
    statement_ending_balance: Optional[float] = None
    statement_link: Optional[str] = None


class AddBatchRequest(BaseModel):
    batch_id: int


class BankTransactionInput(BaseModel):
    date: str
    type: Optional[str] = None
    amount_in: Optional[float] = None
    amount_out: Optional[float] = None
    description: Optional[str] = None
    ref: Optional[str] = None


class BankImportRequest(BaseModel):
    transactions: list[BankTransactionInput]


class MatchRequest(BaseModel):
    bank_transaction_id: int
    system_item_id: int | str
    system_item_type: str


class TransferRequest(BaseModel):
    action: str
    transfer_date: Optional[str] = None
    reference: Optional[str] = None


class ToggleItemRequest(BaseModel):
    type: str
    id: int
    cleared: bool


class ExceptionResolveRequest(BaseModel):
    resolution_notes: str


# Imports


class ImportCommitRequest(BaseModel):
    client_id: Optional[int] = None


# Settings


class MappingRuleCreate(BaseModel):
    target_column: str
    source_system: str = "*"
    default_value: Optional[str] = None
    transformation_rule: Optional[str] = None
    priority: int = 0
    is_active: bool = True


class MappingRuleUpdate(BaseModel):
    target_column: Optional[str] = None
    source_system: Optional[str] = None
    default_value: Optional[str] = None
    transformation_rule: Optional[str] = None
    priority: Optional[int] = None
    is_active: Optional[bool] = None


class AssignmentRuleCreate(BaseModel):
    name: str
    assign_to_user_id: int
    priority: int = 100
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    state: Optional[str] = None
    zip_prefix: Optional[str] = None
    campaign_id: Optional[str] = None
    is_active: bool = True


class AssignmentRuleUpdate(BaseModel):
    name: Optional[str] = None
    assign_to_user_id: Optional[int] = None
    priority: Optional[int] = None
    amount_min: Optional[float] = None
    amount_max: Optional[float] = None
    state: Optional[str] = None
    zip_prefix: Optional[str] = None
    campaign_id: Optional[str] = None
    is_active: Optional[bool] = None


class ExportTemplateCreate(BaseModel):
    name: str
    mappings: list[dict[str, Any]] = Field(default_factory=list)


class ExportTemplateUpdate(BaseModel):
    name: Optional[str] = None
    mappings: Optional[list[dict[str, Any]]] = None


# Journal and reports


class JournalRequest(BaseModel):
    template_id: Optional[int] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    client_id: Optional[int] = None
    account_id: Optional[int] = None
    batch_ids: Optional[list[int]] = None


class SearchRequest(BaseModel):
    """A rule group; ``rules`` holds rules or nested groups."""

    combinator: str = "AND"
    rules: list[dict[str, Any]] = Field(default_factory=list)


# Admin


class UserCreate(BaseModel):
    username: str
    password: Optional[str] = None
    role: str = "Clerk"
    email: Optional[str] = None
    full_name: Optional[str] = None
    initials: Optional[str] = None
    client_ids: list[int] = Field(default_factory=list)
    send_setup_token: bool = False


class UserUpdate(BaseModel):
    email: Optional[str] = None
    full_name: Optional[str] = None
    initials: Optional[str] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None
    client_ids: Optional[list[int]] = None


class AuditCreate(BaseModel):
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: Any = None


class MigrationRequest(BaseModel):
    dry_run: bool = False
