"""Record decoder: one export line in, one user's coin records out.

Each data line is ``<identifier><delimiter><json>``. The identifier is the
text before the first delimiter; everything after it is the JSON document.
The header row carries a reserved identifier and is skipped, not decoded.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal

from rewards_metrics.exceptions import MalformedRecordError
from rewards_metrics.logging import get_logger
from rewards_metrics.models import CoinRecord

logger = get_logger(__name__)

HEADER_IDENTIFIER = "id"
DELIMITER = ","


@dataclass(frozen=True)
class DecodedRow:
    """A decoded data line: the user identifier and their coin records."""

    user_id: str
    records: list[CoinRecord] = field(default_factory=list)
    version: int | None = None  # export schema version, when the document carries one


def decode_line(
    line: str,
    header_identifier: str = HEADER_IDENTIFIER,
    delimiter: str = DELIMITER,
) -> DecodedRow | None:
    """Decode one export line.

    Args:
        line: Raw line text, with or without its trailing newline.
        header_identifier: Identifier value that marks the header row.
        delimiter: Separator between the identifier and the JSON document.

    Returns:
        DecodedRow for a data line, or None for the header row.

    Raises:
        MalformedRecordError: If a non-header line cannot be decoded.
    """
    text = line.rstrip("\r\n")
    user_id, found, payload = text.partition(delimiter)

    if user_id == header_identifier:
        return None

    if not found:
        raise MalformedRecordError("no delimiter after identifier", user_id=user_id or None)

    try:
        document = json.loads(payload, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"invalid JSON: {e}", user_id=user_id) from e

    version = None
    if isinstance(document, dict):
        raw_version = document.get("version")
        version = raw_version if isinstance(raw_version, int) else None
        coin_data = document.get("data")
    else:
        coin_data = document

    if not isinstance(coin_data, list):
        raise MalformedRecordError("document has no list of coin records", user_id=user_id)

    try:
        records = [CoinRecord.from_dict(raw) for raw in coin_data]
    except ValueError as e:
        raise MalformedRecordError(str(e), user_id=user_id) from e

    logger.debug(
        "record_decoded",
        user_id=user_id,
        version=version,
        coins=len(records),
    )
    return DecodedRow(user_id=user_id, records=records, version=version)

