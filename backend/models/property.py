"""
Modelo de dados para Imóveis
Unidades do empreendimento (grupo / bloco / andar / apartamento) anunciadas
para venda ou locação. O estado anunciado é mantido pelos contratos.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum


class AdvertisedStatus(str, Enum):
    """Estado anunciado do imóvel"""
    AVAILABLE_FOR_SALE = "AvailableForSale"
    AVAILABLE_FOR_RENT = "AvailableForRent"
    RESERVED = "Reserved"
    RENTED_ACTIVE = "RentedActive"
    SOLD = "Sold"


# Estados que só existem enquanto um contrato os "conduz"
CONTRACT_DRIVEN_STATUSES = (
    AdvertisedStatus.RESERVED,
    AdvertisedStatus.RENTED_ACTIVE,
    AdvertisedStatus.SOLD,
)


class FloorPlan(str, Enum):
    """Configuração de planta"""
    STANDARD_2_BEDROOMS = "standard_2_bedrooms"
    TWO_BEDROOMS_PANTRY = "2_bedrooms_pantry"
    TWO_BEDROOMS_SERVICE_ROOM = "2_bedrooms_service_room"
    STANDARD_3_BEDROOMS = "standard_3_bedrooms"
    THREE_BEDROOMS_SERVICE_ROOM = "3_bedrooms_service_room"


# Área útil (m²) fixa de cada planta
FLOOR_PLAN_AREAS: Dict[FloorPlan, float] = {
    FloorPlan.STANDARD_2_BEDROOMS: 82,
    FloorPlan.TWO_BEDROOMS_PANTRY: 84,
    FloorPlan.TWO_BEDROOMS_SERVICE_ROOM: 86,
    FloorPlan.STANDARD_3_BEDROOMS: 125,
    FloorPlan.THREE_BEDROOMS_SERVICE_ROOM: 135,
}


class GarageType(str, Enum):
    COVERED = "covered"
    UNCOVERED = "uncovered"


BLOCKS = ["A", "B", "C", "D", "E", "F", "G"]


def validate_unit_layout(group: int, block: str, floor: int, floor_plan: FloorPlan,
                         usable_area: float, garage_spaces: int, garage_type: GarageType) -> None:
    """
    Regras físicas do empreendimento.
    Grupos pares não têm bloco G e vão até ao 28º andar; ímpares até ao 36º.
    """
    even_group = group % 2 == 0
    if even_group and block == "G":
        raise ValueError("Bloco G não é permitido para grupos pares")
    max_floor = 28 if even_group else 36
    if floor < 1 or floor > max_floor:
        raise ValueError(f"Andar inválido para o grupo {group}. Deve ser entre 1 e {max_floor}")
    expected_area = FLOOR_PLAN_AREAS[floor_plan]
    if usable_area != expected_area:
        raise ValueError(
            f"Área útil ({usable_area}m²) não corresponde à planta {floor_plan.value} ({expected_area}m²)"
        )
    if garage_spaces > 1 and garage_type != GarageType.COVERED:
        raise ValueError("Para mais de uma vaga, o tipo deve ser coberta")


class PropertyHistory(BaseModel):
    """Histórico de eventos do imóvel"""
    timestamp: str
    event: str
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    contract_id: Optional[str] = None
    user: Optional[str] = None
    details: Optional[str] = None


class PropertyCreate(BaseModel):
    """Dados para criar um novo imóvel"""
    group: int = Field(ge=12, le=18)
    block: str
    floor: int
    unit: int = Field(ge=1)
    floor_plan: FloorPlan
    usable_area: float
    garage_spaces: int = Field(ge=1, le=3)
    garage_type: GarageType = GarageType.COVERED
    price: float = Field(gt=0)
    advertised_status: AdvertisedStatus = AdvertisedStatus.AVAILABLE_FOR_RENT
    featured: bool = False
    status_notes: Optional[str] = None

    @field_validator('block', mode='before')
    @classmethod
    def normalize_block(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
        if v not in BLOCKS:
            raise ValueError(f"Bloco inválido. Use um de {', '.join(BLOCKS)}")
        return v

    @model_validator(mode='after')
    def check_layout(self):
        validate_unit_layout(
            self.group, self.block, self.floor, self.floor_plan,
            self.usable_area, self.garage_spaces, self.garage_type
        )
        return self


class PropertyUpdate(BaseModel):
    """Dados para actualizar um imóvel (validação cruzada feita na rota)"""
    group: Optional[int] = Field(default=None, ge=12, le=18)
    block: Optional[str] = None
    floor: Optional[int] = None
    unit: Optional[int] = Field(default=None, ge=1)
    floor_plan: Optional[FloorPlan] = None
    usable_area: Optional[float] = None
    garage_spaces: Optional[int] = Field(default=None, ge=1, le=3)
    garage_type: Optional[GarageType] = None
    price: Optional[float] = Field(default=None, gt=0)
    featured: Optional[bool] = None
    status_notes: Optional[str] = None

    @field_validator('block', mode='before')
    @classmethod
    def normalize_block(cls, v):
        if v is None:
            return v
        v = str(v).strip().upper()
        if v not in BLOCKS:
            raise ValueError(f"Bloco inválido. Use um de {', '.join(BLOCKS)}")
        return v


class PropertyStatusChange(BaseModel):
    """Alteração manual do estado anunciado"""
    advertised_status: AdvertisedStatus
    notes: Optional[str] = None


class Property(BaseModel):
    """Imóvel completo"""
    id: str
    group: int
    block: str
    floor: int
    unit: int
    floor_plan: FloorPlan
    usable_area: float
    garage_spaces: int
    garage_type: GarageType
    price: float
    advertised_status: AdvertisedStatus
    linked_contract_id: Optional[str] = None
    status_changed_at: Optional[str] = None
    status_notes: Optional[str] = None
    featured: bool = False

    history: List[PropertyHistory] = []
    version: int = 0

    created_at: str
    updated_at: str
    created_by: Optional[str] = None


class PropertyListItem(BaseModel):
    """Versão resumida para listagem"""
    id: str
    group: int
    block: str
    floor: int
    unit: int
    floor_plan: FloorPlan
    price: float
    advertised_status: AdvertisedStatus
    linked_contract_id: Optional[str] = None
    featured: bool = False
    created_at: str


def property_label(prop: Dict[str, Any]) -> str:
    """Identificação legível: G12-A-05-51"""
    return f"G{prop.get('group')}-{prop.get('block')}-{prop.get('floor'):02d}-{prop.get('unit')}"
