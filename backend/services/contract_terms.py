"""
Cálculos de prazos e ajustes dos contratos.
"""
import calendar
from datetime import date, datetime, timedelta
from typing import Optional, Dict, Any

from config import CONTRACT_ADJUSTMENT_PERIOD_DAYS
from models.contract import AdjustmentKind, ContractStatus


def _clamp_day(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def compute_next_due_date(due_day: int, today: Optional[date] = None) -> date:
    """
    Próximo vencimento: o dia `due_day` deste mês se ainda não passou,
    senão o do mês seguinte. Dias inexistentes (31 em Abril) caem no último dia do mês.
    """
    today = today or date.today()
    this_month = _clamp_day(today.year, today.month, due_day)
    if this_month >= today:
        return this_month
    if today.month == 12:
        return _clamp_day(today.year + 1, 1, due_day)
    return _clamp_day(today.year, today.month + 1, due_day)


def _parse_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def needs_adjustment(contract: Dict[str, Any], today: Optional[date] = None) -> bool:
    """Contrato em vigor cujo último ajuste (ou início) tem pelo menos um período."""
    if contract.get("status") not in (ContractStatus.ACTIVE.value, ContractStatus.OVERDUE.value):
        return False
    reference = _parse_date(contract.get("last_adjustment_date")) or _parse_date(contract.get("start_date"))
    if reference is None:
        return False
    today = today or date.today()
    return (today - reference) >= timedelta(days=CONTRACT_ADJUSTMENT_PERIOD_DAYS)


def build_adjustment(
    contract: Dict[str, Any],
    kind: AdjustmentKind,
    new_value: Optional[float] = None,
    reason: Optional[str] = None,
    on: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Entrada do histórico de ajustes. Um reajuste sem valor explícito aplica
    o percentual anual do contrato.
    """
    previous_value = float(contract.get("amount") or 0)
    if new_value is None:
        if kind != AdjustmentKind.READJUSTMENT:
            raise ValueError("Indique o novo valor para ajustes que não sejam reajuste")
        percentage = contract.get("annual_adjustment_percentage")
        if percentage is None:
            raise ValueError("Contrato sem percentual de reajuste anual definido")
        new_value = round(previous_value * (1 + float(percentage) / 100), 2)

    return {
        "date": (on or date.today()).isoformat(),
        "kind": kind.value,
        "previous_value": previous_value,
        "new_value": float(new_value),
        "reason": reason,
    }


def with_derived_fields(contract: Dict[str, Any], today: Optional[date] = None) -> Dict[str, Any]:
    """Acrescenta os campos calculados à resposta."""
    contract = dict(contract)
    contract["needs_adjustment"] = needs_adjustment(contract, today)
    return contract
