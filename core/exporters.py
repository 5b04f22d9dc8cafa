"""
Excel export of extracted transaction records.
"""
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import pandas as pd

from core.config import get_settings
from core.exceptions import ExportError
from core.logger import setup_logger
from core.schema import TransactionRecord

logger = setup_logger(__name__)

# Column headers in display order
EXPORT_COLUMNS = {
    "date": "Date",
    "time": "Time",
    "kind": "Type",
    "amount": "Amount",
    "description": "Description",
    "sender": "Sender",
    "id": "ID",
    "full_message": "Message",
}


def records_to_dataframe(records: List[TransactionRecord]) -> pd.DataFrame:
    """
    Build a display DataFrame from records.

    Args:
        records: Extracted records

    Returns:
        DataFrame with EXPORT_COLUMNS headers, in record order
    """
    rows = []
    for record in records:
        data = record.model_dump()
        data["kind"] = record.kind.value
        rows.append({header: data[field] for field, header in EXPORT_COLUMNS.items()})
    return pd.DataFrame(rows, columns=list(EXPORT_COLUMNS.values()))


def export_to_excel(
    records: List[TransactionRecord],
    output_path: str,
    sheet_name: str = "Transactions"
) -> str:
    """
    Export records to Excel with a wrapped message column.

    Args:
        records: Records to export (written in the given order)
        output_path: Output file path
        sheet_name: Worksheet name

    Returns:
        Path to created file

    Raises:
        ExportError: If export fails
    """
    logger.info(f"Exporting {len(records)} transactions to {output_path}")

    output_df = records_to_dataframe(records)

    # Ensure output directory exists
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)

    try:
        with pd.ExcelWriter(output_path, engine="xlsxwriter") as writer:
            output_df.to_excel(writer, sheet_name=sheet_name, index=False)

            workbook = writer.book
            worksheet = writer.sheets[sheet_name]

            # Message column is last and wraps
            wrap_format = workbook.add_format({"text_wrap": True, "valign": "top"})
            message_col_idx = len(output_df.columns) - 1
            worksheet.set_column(message_col_idx, message_col_idx, 80, wrap_format)

            # Auto-fit other columns (approximate)
            for idx, col in enumerate(output_df.columns[:-1]):
                values_len = output_df[col].astype(str).map(len).max() if len(output_df) else 0
                max_len = max(values_len, len(str(col)))
                worksheet.set_column(idx, idx, min(max_len + 2, 50))

        logger.info(f"Successfully exported to {output_path}")
        return output_path

    except Exception as e:
        logger.error(f"Failed to export Excel: {e}")
        raise ExportError(
            "Failed to export to Excel",
            details={"output_path": output_path, "error": str(e)}
        )


def create_output_filename(base_path: Optional[str] = None) -> str:
    """
    Create timestamped output filename.

    Args:
        base_path: Base directory path (defaults to configured temp storage)

    Returns:
        Full output file path
    """
    if base_path is None:
        base_path = get_settings().temp_storage_path

    Path(base_path).mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S-%f")
    filename = f"sms_transactions_{timestamp}.xlsx"

    return str(Path(base_path) / filename)
