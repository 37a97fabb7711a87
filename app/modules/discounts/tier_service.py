# app/modules/discounts/tier_service.py
from decimal import Decimal
from typing import Union

from app.config.settings import settings
from app.shared.schemas.workflow import Role

Money = Union[Decimal, int, float, str]


def to_money(value: Money) -> Decimal:
    """Convertir a Decimal sin pasar por la representación binaria del float"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def required_tier(
    amount: Money,
    team_lead_max: Decimal = None,
    division_manager_max: Decimal = None
) -> Role:
    """
    Nivel de aprobación requerido para un monto total.

    Umbrales inclusivos: <= 99.00 team lead, <= 199.00 division manager,
    por encima sales director. El monto se valida no negativo antes.
    """
    team_lead_max = settings.team_lead_max_amount if team_lead_max is None else team_lead_max
    division_manager_max = (
        settings.division_manager_max_amount if division_manager_max is None else division_manager_max
    )

    total = to_money(amount)
    if total <= team_lead_max:
        return Role.TEAM_LEAD
    if total <= division_manager_max:
        return Role.DIVISION_MANAGER
    return Role.SALES_DIRECTOR
