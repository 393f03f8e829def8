"""
Field normalisation: parsed JSON → typed, immutable category records.

The model is not bound to a schema, so every field is coerced on the way
in and falls back to a documented default instead of raising.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Optional, Union

from quotex.models import (
    Category,
    EquipmentGroup,
    EquipmentItem,
    ExpenseGroup,
    ExpenseItem,
    ServiceActivity,
    ServiceGroup,
    ServiceResource,
    SummaryRecord,
)

RecoveredRecord = Union[SummaryRecord, List[EquipmentGroup], List[ServiceGroup], List[ExpenseGroup]]

# Defaults for fields the model left out or filled with garbage
DEFAULT_CURRENCY = "USD"
DEFAULT_EQUIPMENT_CATEGORY = "General"
DEFAULT_UNIT = "Und"
DEFAULT_COST_FACTOR = 1.0
DEFAULT_SALE_FACTOR = 1.25
DEFAULT_QUANTITY = 1.0
DEFAULT_SAFETY_FACTOR = 1.0
DEFAULT_SERVICE_MARGIN = 1.35
DEFAULT_LOCATION = "oficina"
KNOWN_LOCATIONS = frozenset({"oficina", "campo"})

RE_NUMBER_TOKEN = re.compile(r"[-+]?\d[\d.,]*(?:[eE][-+]?\d+)?")
RE_GROUPED_COMMA = re.compile(r"^\d{1,3}(?:,\d{3})+$")
RE_GROUPED_DOT = re.compile(r"^\d{1,3}(?:\.\d{3}){2,}$")
RE_DIGIT_SPACE = re.compile(r"(?<=\d)[\s\u00a0](?=\d{3}(?!\d))")
# "(" directly before the number, allowing a currency symbol or code in between
RE_OPEN_PAREN_BEFORE = re.compile(r"\(\s*(?:[A-Za-z]{3}|[^\w\s()]{1,3})?\s*$")
# Parenthesized notes such as "(approx)" or "(2 rolls)"
RE_PAREN_NOTE = re.compile(r"\([^()]*[A-Za-z][^()]*\)")


# ---------------------------------------------------------------------------
# Scalar coercion
# ---------------------------------------------------------------------------

def _is_parenthesized(compact: str, match: "re.Match") -> bool:
    before = compact[: match.start()]
    after = compact[match.end():].lstrip(" .,%")
    return bool(RE_OPEN_PAREN_BEFORE.search(before)) and after.startswith(")")


def _number_from_text(text: str) -> Optional[float]:
    compact = RE_DIGIT_SPACE.sub("", text.strip())
    without_notes = RE_PAREN_NOTE.sub(" ", compact)
    if RE_NUMBER_TOKEN.search(without_notes):
        compact = without_notes
    match = RE_NUMBER_TOKEN.search(compact)
    if not match:
        return None
    token = match.group(0).rstrip(".,")
    negative = token.startswith("-") or _is_parenthesized(compact, match)
    token = token.lstrip("+-")

    if "," in token and "." in token:
        # The separator that occurs last is the decimal mark
        if token.rfind(",") > token.rfind("."):
            token = token.replace(".", "").replace(",", ".")
        else:
            token = token.replace(",", "")
    elif RE_GROUPED_COMMA.match(token):
        token = token.replace(",", "")
    elif RE_GROUPED_DOT.match(token):
        token = token.replace(".", "")
    else:
        token = token.replace(",", ".")
        if token.count(".") > 1:
            return None

    try:
        value = float(token)
    except ValueError:
        return None
    if negative:
        value = -value
    if compact.rstrip().endswith("%"):
        value = value / 100.0
    return value


def coerce_float(value: Any, default: float) -> float:
    """Best-effort float; *default* for None, booleans, blanks, NaN and garbage."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        result = float(value)
    elif isinstance(value, str):
        parsed = _number_from_text(value)
        if parsed is None:
            return default
        result = parsed
    else:
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def coerce_str(value: Any, default: str = "") -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = " ".join(str(value).split())
    return text or default


def _first(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] not in (None, ""):
            return data[key]
    return None


def _dicts(value: Any) -> List[Dict[str, Any]]:
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        return [v for v in value if isinstance(v, dict)]
    return []


def _group_dicts(payload: Any, child_key: str) -> List[Dict[str, Any]]:
    """
    Accept ``{"groups": [...]}``, a bare group object, a list of groups or a
    bare list of items (wrapped into one unnamed group). An object whose
    only list value holds groups or items (``{"grupos": [...]}``) is
    unwrapped the same way.
    """
    if isinstance(payload, dict):
        for key in ("groups", "grupos"):
            if key in payload:
                return _dicts(payload[key])
        if child_key in payload:
            return [payload]
        lists = [v for v in payload.values() if isinstance(v, list)]
        if len(lists) == 1:
            return _group_dicts(lists[0], child_key)
        return []
    entries = _dicts(payload)
    if entries and all(child_key in e for e in entries):
        return entries
    if entries:
        return [{child_key: entries}]
    return []


def _round2(value: float) -> float:
    return round(value, 2)


# ---------------------------------------------------------------------------
# Category records
# ---------------------------------------------------------------------------

def normalize_summary(payload: Any) -> SummaryRecord:
    entries = _dicts(payload)
    data = entries[0] if entries else {}
    return SummaryRecord(
        project_name=coerce_str(_first(data, "project_name", "project", "nombreProyecto")),
        client_name=coerce_str(_first(data, "client_name", "client", "cliente")),
        currency=coerce_str(_first(data, "currency", "moneda"), DEFAULT_CURRENCY).upper(),
        total_equipment=coerce_float(_first(data, "total_equipment", "totalEquipos"), 0.0),
        total_services=coerce_float(_first(data, "total_services", "totalServicios"), 0.0),
        total_expenses=coerce_float(_first(data, "total_expenses", "totalGastos"), 0.0),
        total=coerce_float(_first(data, "total", "grand_total"), 0.0),
    )


def _equipment_item(data: Dict[str, Any]) -> Optional[EquipmentItem]:
    code = coerce_str(_first(data, "code", "codigo"))
    description = coerce_str(_first(data, "description", "descripcion"))
    if not code and not description:
        return None
    list_price = coerce_float(_first(data, "list_price", "precioLista"), 0.0)
    cost_factor = coerce_float(_first(data, "cost_factor", "factorCosto"), DEFAULT_COST_FACTOR)
    internal_price = coerce_float(
        _first(data, "internal_price", "precioInterno"), _round2(list_price * cost_factor)
    )
    sale_factor = coerce_float(_first(data, "sale_factor", "factorVenta"), DEFAULT_SALE_FACTOR)
    client_price = coerce_float(
        _first(data, "client_price", "precioCliente"), _round2(internal_price * sale_factor)
    )
    return EquipmentItem(
        code=code,
        description=description or code,
        category=coerce_str(_first(data, "category", "categoria"), DEFAULT_EQUIPMENT_CATEGORY),
        unit=coerce_str(_first(data, "unit", "unidad"), DEFAULT_UNIT),
        brand=coerce_str(_first(data, "brand", "marca")),
        quantity=coerce_float(_first(data, "quantity", "cantidad"), DEFAULT_QUANTITY),
        list_price=list_price,
        cost_factor=cost_factor,
        internal_price=internal_price,
        sale_factor=sale_factor,
        client_price=client_price,
    )


def normalize_equipment(payload: Any, sheet_name: str) -> List[EquipmentGroup]:
    groups: List[EquipmentGroup] = []
    for group in _group_dicts(payload, "items"):
        items = [item for item in map(_equipment_item, _dicts(group.get("items"))) if item]
        if not items:
            continue
        name = coerce_str(_first(group, "group", "name", "grupo"), sheet_name)
        groups.append(EquipmentGroup(name=name, items=items))
    return groups


def _service_resource(data: Dict[str, Any]) -> Optional[ServiceResource]:
    name = coerce_str(_first(data, "resource_name", "resource", "recursoNombre"))
    if not name:
        return None
    location = coerce_str(_first(data, "location", "tipo"), DEFAULT_LOCATION).lower()
    return ServiceResource(
        resource_name=name,
        hours=coerce_float(_first(data, "hours", "horas"), 0.0),
        hourly_cost=coerce_float(_first(data, "hourly_cost", "costoHora"), 0.0),
        location=location if location in KNOWN_LOCATIONS else DEFAULT_LOCATION,
    )


def _service_activity(data: Dict[str, Any]) -> Optional[ServiceActivity]:
    description = coerce_str(_first(data, "description", "descripcion"))
    name = coerce_str(_first(data, "name", "nombre"), description)
    if not name:
        return None
    resources = [r for r in map(_service_resource, _dicts(data.get("resources", data.get("recursos")))) if r]
    return ServiceActivity(name=name, description=description, resources=resources)


def normalize_services(payload: Any, sheet_name: str) -> List[ServiceGroup]:
    groups: List[ServiceGroup] = []
    for group in _group_dicts(payload, "activities"):
        activities = [a for a in map(_service_activity, _dicts(group.get("activities"))) if a]
        if not activities:
            continue
        groups.append(
            ServiceGroup(
                name=coerce_str(_first(group, "group", "name", "grupo"), sheet_name),
                suggested_schedule_code=coerce_str(
                    _first(group, "suggested_schedule_code", "edtSugerido")
                ),
                safety_factor=coerce_float(
                    _first(group, "safety_factor", "factorSeguridad"), DEFAULT_SAFETY_FACTOR
                ),
                margin=coerce_float(_first(group, "margin", "margen"), DEFAULT_SERVICE_MARGIN),
                activities=activities,
            )
        )
    return groups


def _expense_item(data: Dict[str, Any]) -> Optional[ExpenseItem]:
    description = coerce_str(_first(data, "description", "descripcion"))
    name = coerce_str(_first(data, "name", "nombre"), description)
    if not name:
        return None
    quantity = coerce_float(_first(data, "quantity", "cantidad"), DEFAULT_QUANTITY)
    unit_price = coerce_float(_first(data, "unit_price", "precioUnitario"), 0.0)
    internal_cost = coerce_float(
        _first(data, "internal_cost", "costoInterno"), _round2(quantity * unit_price)
    )
    return ExpenseItem(
        name=name,
        description=description,
        quantity=quantity,
        unit_price=unit_price,
        internal_cost=internal_cost,
        client_cost=coerce_float(_first(data, "client_cost", "costoCliente"), internal_cost),
    )


def normalize_expenses(payload: Any, sheet_name: str) -> List[ExpenseGroup]:
    groups: List[ExpenseGroup] = []
    for group in _group_dicts(payload, "items"):
        items = [item for item in map(_expense_item, _dicts(group.get("items"))) if item]
        if not items:
            continue
        name = coerce_str(_first(group, "group", "name", "grupo"), sheet_name)
        groups.append(ExpenseGroup(name=name, items=items))
    return groups


def normalize_payload(category: Category, payload: Any, sheet_name: str) -> RecoveredRecord:
    """Dispatch *payload* to the record builder for *category*."""
    if category == Category.SUMMARY:
        return normalize_summary(payload)
    if category == Category.EQUIPMENT:
        return normalize_equipment(payload, sheet_name)
    if category == Category.SERVICES:
        return normalize_services(payload, sheet_name)
    return normalize_expenses(payload, sheet_name)
