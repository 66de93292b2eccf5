"""
Spreadsheet serialization: flat score rows out, student/judge rosters in.

Exports use pandas (CSV) and pandas + openpyxl (xlsx). Imports accept either
format and locate columns by header text, the first non-empty row being the
header row.
"""

from __future__ import annotations

import logging
import zipfile
from io import BytesIO, StringIO
from typing import Dict, List, Sequence

import pandas as pd

from .errors import ImportFormatError

logger = logging.getLogger(__name__)

FLAT_COLUMNS = ["Student", "Group", "Judge", "Criterion", "Score", "Submitted"]
STUDENT_COLUMNS = ("Students Name", "Grade")
JUDGE_COLUMNS = ("Judge Name", "username", "password", "Assigned group")


# -----------------------
# Export
# -----------------------
def flat_rows_frame(rows: Sequence[Dict]) -> pd.DataFrame:
    frame = pd.DataFrame(list(rows), columns=["student", "group", "judge", "criterion", "score", "submitted"])
    frame.columns = FLAT_COLUMNS
    frame["Submitted"] = frame["Submitted"].map(lambda v: "Yes" if v else "No")
    return frame


def rows_to_csv(rows: Sequence[Dict]) -> str:
    buf = StringIO()
    flat_rows_frame(rows).to_csv(buf, index=False)
    return buf.getvalue()


def rows_to_xlsx(rows: Sequence[Dict], summary: pd.DataFrame) -> bytes:
    buf = BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        flat_rows_frame(rows).to_excel(writer, sheet_name="Raw Data", index=False)
        summary.to_excel(writer, sheet_name="Summary", index=False)
    return buf.getvalue()


# -----------------------
# Import
# -----------------------
def read_sheet(filename: str, content: bytes) -> pd.DataFrame:
    """Load the first sheet with no header inference, every cell as text."""
    name = (filename or "").lower()
    try:
        if name.endswith(".xlsx"):
            frame = pd.read_excel(BytesIO(content), header=None, dtype=str, engine="openpyxl")
        elif name.endswith(".csv"):
            frame = pd.read_csv(BytesIO(content), header=None, dtype=str, skip_blank_lines=False)
        else:
            raise ImportFormatError("Invalid file format. Please upload an Excel (.xlsx) or CSV file.")
    except ImportFormatError:
        raise
    except (ValueError, OSError, KeyError, zipfile.BadZipFile) as e:
        raise ImportFormatError(f"Could not read spreadsheet: {e}") from e
    return frame.fillna("")


def find_column(headers: List[str], wanted: str) -> int:
    target = wanted.lower().strip()
    for i, header in enumerate(headers):
        h = header.lower().strip()
        if not h:
            continue
        if h == target or target in h or h in target:
            return i
    return -1


def _records(frame: pd.DataFrame, columns: Sequence[str]) -> List[Dict[str, str]]:
    if frame.empty:
        raise ImportFormatError("Spreadsheet is empty.")
    cells = frame.astype(str).apply(lambda col: col.str.strip())
    header_idx = None
    for i in range(len(cells)):
        if any(cells.iloc[i]):
            header_idx = i
            break
    if header_idx is None:
        raise ImportFormatError("Could not find header row in spreadsheet.")

    headers = list(cells.iloc[header_idx])
    index = {}
    for column in columns:
        pos = find_column(headers, column)
        if pos == -1:
            raise ImportFormatError(f'Could not find "{column}" column. Please check your spreadsheet headers.')
        index[column] = pos

    out = []
    for i in range(header_idx + 1, len(cells)):
        row = cells.iloc[i]
        out.append({column: row.iloc[pos] for column, pos in index.items()})
    return out


def parse_students(frame: pd.DataFrame) -> List[Dict[str, str]]:
    """Rows of {"name", "grade"}; rows missing either are skipped."""
    students = []
    for rec in _records(frame, STUDENT_COLUMNS):
        name, grade = rec["Students Name"], rec["Grade"]
        if not name or not grade:
            continue
        students.append({"name": name, "grade": grade})
    if not students:
        raise ImportFormatError("No valid student data found in spreadsheet.")
    return students


def parse_judges(frame: pd.DataFrame) -> List[Dict[str, str]]:
    judges = []
    for line, rec in enumerate(_records(frame, JUDGE_COLUMNS), start=2):
        values = [rec[c] for c in JUDGE_COLUMNS]
        if not any(values):
            continue
        if not all(values):
            logger.warning("Skipping judge row %d: missing required fields", line)
            continue
        judges.append(
            {
                "name": rec["Judge Name"],
                "username": rec["username"],
                "password": rec["password"],
                "group": rec["Assigned group"],
            }
        )
    if not judges:
        raise ImportFormatError("No valid judge data found in spreadsheet.")
    return judges
