"""Config loading utilities for docseq."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from docseq.core.models import NumberingConfig, PartitionScheme, RetryConfig, SequenceSpec

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(".docseq") / "numbering.yaml"


def load_numbering_config(path: Path) -> dict[str, Any]:
    """Load a numbering.yaml file as a dict.

    Returns empty dict if the file doesn't exist.
    """
    if not path.exists():
        logger.debug("No numbering config found at %s; using defaults", path)
        return {}

    logger.info("Loading numbering config from %s", path)
    with path.open() as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        logger.warning("numbering.yaml did not contain a mapping; using empty dict")
        return {}

    return data


def make_numbering_config(data: dict[str, Any]) -> NumberingConfig:
    """Build a NumberingConfig from numbering.yaml values.

    The ``retry`` section overrides the defaults of :class:`RetryConfig`;
    ``sequences`` overrides or extends :func:`default_sequence_specs` by
    entity name.
    """
    retry_section = data.get("retry", {})
    if not isinstance(retry_section, dict):
        logger.warning("'retry' key is not a mapping; ignoring")
        retry_section = {}

    valid_fields = RetryConfig.model_fields
    filtered = {k: v for k, v in retry_section.items() if k in valid_fields}

    if dropped := set(retry_section) - set(filtered):
        logger.warning("Ignoring unknown retry config keys: %s", sorted(dropped))

    sequences = default_sequence_specs()
    sequence_section = data.get("sequences", {})
    if not isinstance(sequence_section, dict):
        logger.warning("'sequences' key is not a mapping; ignoring")
        sequence_section = {}

    for entity, overrides in sequence_section.items():
        if not isinstance(overrides, dict):
            logger.warning("Sequence %r is not a mapping; ignoring", entity)
            continue
        base = sequences[entity].model_dump() if entity in sequences else {}
        try:
            sequences[entity] = SequenceSpec(**{**base, **overrides, "entity": entity})
        except ValidationError as exc:
            raise ValueError(f"Invalid sequence config for {entity!r}: {exc}") from exc

    return NumberingConfig(retry=RetryConfig(**filtered), sequences=sequences)


def default_sequence_specs() -> dict[str, SequenceSpec]:
    """Return the numbered entity families of the retail backend.

    Most families restart every calendar year with six digits
    (``PPAY2025000001``). Orders restart monthly with five digits under a
    two-digit year (``ORD250600001``); roles and user accounts never restart
    (``ROLE001``).
    """
    yearly = {
        "purchase_payment": ("PPAY", "payment_number"),
        "sales_payment": ("SPAY", "payment_number"),
        "purchase_order": ("PO", "po_number"),
        "stock_out_order": ("SO", "so_number"),
        "category": ("CAT", "category_code"),
        "customer": ("CUST", "customer_code"),
        "supplier": ("SUP", "supplier_code"),
        "product": ("PROD", "product_code"),
        "location": ("LOC", "location_code"),
        "inventory_movement": ("INV", "movement_number"),
        "inventory_movement_batch": ("BATCHMOV", "movement_number"),
    }
    specs = {
        entity: SequenceSpec(entity=entity, prefix=prefix, field=field)
        for entity, (prefix, field) in yearly.items()
    }

    specs["order"] = SequenceSpec(
        entity="order",
        prefix="ORD",
        width=5,
        partition=PartitionScheme.short_year_month,
        field="order_number",
    )
    specs["role"] = SequenceSpec(
        entity="role", prefix="ROLE", width=3, partition=PartitionScheme.none, field="role_code"
    )
    specs["user_account"] = SequenceSpec(
        entity="user_account",
        prefix="USER",
        width=3,
        partition=PartitionScheme.none,
        field="user_code",
    )
    return specs
