"""Convert the SES.Hospedajes catalog workbook into JSON caches.

Usage:
    python scripts/build_catalog_cache.py --src catalogos.xlsx --out data/catalog_cache

Notes:
- Requires openpyxl.
- Sheets are matched by name (countries/paises, provinces/provincias,
  document_types/tipos_documento). The first row is the header; the code
  and label columns are found by header text.
"""

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import openpyxl

SHEETS = {
    "countries": {"countries", "paises", "países"},
    "provinces": {"provinces", "provincias"},
    "document_types": {"document_types", "tipos_documento", "tipos de documento"},
}

CODE_HEADERS = {"code", "codigo", "código", "alpha3", "iso3"}
LABEL_HEADERS = {"label", "nombre", "descripcion", "descripción", "name"}
ALPHA2_HEADERS = {"alpha2", "iso2"}


def _column(header: List[Any], names: set) -> Optional[int]:
    for idx, cell in enumerate(header):
        if cell is not None and str(cell).strip().lower() in names:
            return idx
    return None


def extract_entries(rows: List[List[Any]]) -> List[Dict[str, str]]:
    if not rows:
        return []
    header = rows[0]
    code_col = _column(header, CODE_HEADERS)
    label_col = _column(header, LABEL_HEADERS)
    alpha2_col = _column(header, ALPHA2_HEADERS)
    if code_col is None or label_col is None:
        return []
    entries = []
    for row in rows[1:]:
        if not row or len(row) <= max(code_col, label_col):
            continue
        code = row[code_col]
        if code is None or str(code).strip() == "":
            continue
        # Numeric codes come back from Excel as floats
        if isinstance(code, float) and code.is_integer():
            code = int(code)
        entry = {"code": str(code).strip(), "label": str(row[label_col] or "").strip()}
        if alpha2_col is not None and len(row) > alpha2_col and row[alpha2_col]:
            entry["alpha2"] = str(row[alpha2_col]).strip()
        entries.append(entry)
    return entries


def load_workbook(path: Path) -> Dict[str, List[Dict[str, str]]]:
    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    data = {}
    for sheet in wb.sheetnames:
        target = next((k for k, names in SHEETS.items() if sheet.strip().lower() in names), None)
        if target is None:
            continue
        rows = [list(row) for row in wb[sheet].iter_rows(values_only=True)]
        data[target] = extract_entries(rows)
    wb.close()
    return data


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--src", type=Path, required=True, help="Catalog XLSX workbook")
    parser.add_argument("--out", type=Path, required=True, help="Output directory for JSON cache")
    args = parser.parse_args()

    args.out.mkdir(parents=True, exist_ok=True)

    for name, entries in load_workbook(args.src).items():
        if name == "provinces":
            # INE province codes are two digits
            for entry in entries:
                entry["code"] = entry["code"].zfill(2)
        out_path = args.out / f"{name}.json"
        with out_path.open("w", encoding="utf-8") as f:
            json.dump(entries, f, ensure_ascii=False, indent=2)
        print(f"Wrote {out_path} ({len(entries)} entries)")


if __name__ == "__main__":
    main()
