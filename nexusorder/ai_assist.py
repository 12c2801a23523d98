"""
nexusorder/ai_assist.py

Smart assist: turn a pasted e-mail / note into a draft order suggestion.

analyze_text_for_order(text) -> dict | None
    Sends the text to an OpenAI chat completion in JSON mode. Any failure (no key,
    network, bad JSON, unexpected shape) is logged and returns None; the caller
    keeps the draft as it was.

apply_suggestion(draft, suggestion, clients) -> dict
    Merges a suggestion into a draft without overwriting filled fields with empty values.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Iterable, Optional

from flask import current_app
from openai import OpenAI

logger = logging.getLogger(__name__)

SUGGESTION_FIELDS = (
    "client",
    "service_name",
    "unit_of_measure",
    "quantity",
    "observations",
    "po_number",
)

SYSTEM_PROMPT = (
    "Extraes datos de pedidos de servicio a partir de texto libre. "
    "Responde SOLO con un objeto JSON con las claves: "
    "client (nombre de la empresa cliente), "
    "service_name (descripción corta del servicio o proyecto), "
    "unit_of_measure (ej. Horas, Días, Story Points, Proyecto), "
    "quantity (número), "
    "observations (notas relevantes o resumen), "
    "po_number (código de orden de compra si existe). "
    "Si un dato no aparece, usa null."
)


def _get_client() -> Optional[OpenAI]:
    api_key = current_app.config.get("OPENAI_API_KEY")
    if not api_key:
        logger.warning("OPENAI_API_KEY no configurada; asistente IA deshabilitado.")
        return None
    return OpenAI(api_key=api_key)


def _positive_quantity(value: Any) -> Optional[float]:
    """Finite number > 0, otherwise None (zero / NaN means "not mentioned")."""
    try:
        quantity = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(quantity) or quantity <= 0:
        return None
    return quantity


def _clean(payload: Any) -> Optional[dict]:
    if not isinstance(payload, dict):
        return None
    suggestion = {field: payload.get(field) for field in SUGGESTION_FIELDS}

    suggestion["quantity"] = _positive_quantity(suggestion.get("quantity"))
    return suggestion


def analyze_text_for_order(text: str) -> Optional[dict]:
    if not text or not text.strip():
        return None

    client = _get_client()
    if client is None:
        return None

    try:
        response = client.chat.completions.create(
            model=current_app.config.get("AI_MODEL", "gpt-4o-mini"),
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f'Texto: "{text}"'},
            ],
            response_format={"type": "json_object"},
            temperature=0,
        )
        content = response.choices[0].message.content
        if not content:
            return None
        return _clean(json.loads(content))
    except Exception:
        logger.exception("Error en análisis IA del pedido")
        return None


def match_client(guess: str, clients: Iterable[Any]) -> Optional[Any]:
    """First known client whose name contains the guess (case-insensitive)."""
    if not guess:
        return None
    needle = guess.strip().lower()
    for client in clients:
        name = (getattr(client, "name", None) or "").lower()
        if needle and needle in name:
            return client
    return None


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def apply_suggestion(draft: dict, suggestion: Optional[dict], clients: Iterable[Any] = ()) -> dict:
    """
    Return a new draft with the suggestion merged in.

    - empty suggestion values never replace anything (a zero quantity counts as empty)
    - "client" is resolved against known clients; unmatched guesses are ignored
    """
    merged = dict(draft)
    if not suggestion:
        return merged

    for field in ("service_name", "unit_of_measure", "quantity", "observations", "po_number"):
        value = suggestion.get(field)
        if field == "quantity":
            value = _positive_quantity(value)
        if not _is_empty(value):
            merged[field] = value

    client = match_client(suggestion.get("client") or "", clients)
    if client is not None:
        merged["client_id"] = client.id
        merged["client_name"] = client.name

    return merged
