"""
Modelo de dados para Contratos
Contratos de locação ou venda entre um inquilino/comprador e um imóvel.
"""
from typing import Optional, List
from datetime import date
from enum import Enum
from pydantic import BaseModel, Field, field_validator, model_validator


class ContractType(str, Enum):
    RENTAL = "Rental"
    SALE = "Sale"


class ContractStatus(str, Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    OVERDUE = "Overdue"
    TERMINATED = "Terminated"
    COMPLETED = "Completed"

    @classmethod
    def from_string(cls, value: str) -> "ContractStatus":
        """Normaliza o estado ignorando maiúsculas ("active" -> Active)."""
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ValueError(
            "Status inválido. Use 'Pending', 'Active', 'Overdue', 'Terminated' ou 'Completed'."
        )


# Estados que libertam o imóvel (salvo se outro contrato Active o mantiver)
RELEASING_STATUSES = (
    ContractStatus.TERMINATED,
    ContractStatus.COMPLETED,
    ContractStatus.OVERDUE,
)


class AdjustmentIndex(str, Enum):
    IGPM = "IGPM"
    IPCA = "IPCA"
    INPC = "INPC"
    FIXED = "Fixed"
    OTHER = "Other"


class AdjustmentKind(str, Enum):
    READJUSTMENT = "Readjustment"
    DISCOUNT = "Discount"
    PENALTY = "Penalty"
    OTHER = "Other"


class ContractAdjustment(BaseModel):
    """Entrada do histórico de ajustes do valor"""
    date: str
    kind: AdjustmentKind
    previous_value: float
    new_value: float
    reason: Optional[str] = None


class ContractBase(BaseModel):
    tenant_id: str
    property_id: str
    type: ContractType
    start_date: date
    end_date: date
    duration_months: int = Field(ge=1)
    amount: float = Field(ge=0)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    last_adjustment_date: Optional[date] = None
    annual_adjustment_percentage: Optional[float] = None
    adjustment_index: Optional[AdjustmentIndex] = None
    notes: Optional[str] = None

    @model_validator(mode='after')
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("A data de término não pode ser anterior à data de início")
        return self


class ContractCreate(ContractBase):
    code: Optional[str] = None
    status: ContractStatus = ContractStatus.PENDING

    @field_validator('code', mode='before')
    @classmethod
    def strip_code(cls, v):
        if v is None:
            return v
        v = str(v).strip()
        return v or None

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, v):
        if v is None:
            return ContractStatus.PENDING
        return ContractStatus.from_string(v)


class ContractUpdate(BaseModel):
    """Actualização completa (campos omitidos ficam inalterados)"""
    code: Optional[str] = None
    tenant_id: Optional[str] = None
    property_id: Optional[str] = None
    type: Optional[ContractType] = None
    status: Optional[ContractStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    duration_months: Optional[int] = Field(default=None, ge=1)
    amount: Optional[float] = Field(default=None, ge=0)
    due_day: Optional[int] = Field(default=None, ge=1, le=31)
    last_adjustment_date: Optional[date] = None
    annual_adjustment_percentage: Optional[float] = None
    adjustment_index: Optional[AdjustmentIndex] = None
    notes: Optional[str] = None

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, v):
        if v is None:
            return v
        return ContractStatus.from_string(v)


class ContractStatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = None


class ContractAdjustmentCreate(BaseModel):
    kind: AdjustmentKind = AdjustmentKind.READJUSTMENT
    new_value: Optional[float] = Field(default=None, ge=0)
    reason: Optional[str] = None
    effective_date: Optional[date] = None


class Contract(BaseModel):
    id: str
    code: str
    tenant_id: str
    property_id: str
    type: ContractType
    status: ContractStatus
    start_date: str
    end_date: str
    duration_months: int
    amount: float
    due_day: Optional[int] = None
    next_due_date: Optional[str] = None
    last_adjustment_date: Optional[str] = None
    annual_adjustment_percentage: Optional[float] = None
    adjustment_index: Optional[AdjustmentIndex] = None
    notes: Optional[str] = None
    termination_date: Optional[str] = None
    termination_reason: Optional[str] = None
    adjustments: List[ContractAdjustment] = []
    needs_adjustment: bool = False
    created_at: str
    updated_at: str
    created_by: Optional[str] = None


class Pagination(BaseModel):
    total: int
    limit: int
    skip: int
    pages: int


class ContractPage(BaseModel):
    data: List[Contract]
    pagination: Pagination
