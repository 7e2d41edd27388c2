import re

import pandas as pd

from services import validation

REQUIRED_COLUMNS = [
    "product_id",
    "quantity",
]

OPTIONAL_COLUMNS = [
    "name",
    "length",
    "weight",
    "position",
]

COLUMN_ALIASES = {
    "productid": "product_id",
    "product": "product_id",
    "code": "product_id",
    "codigo": "product_id",
    "sku": "product_id",
    "qty": "quantity",
    "cantidad": "quantity",
    "units": "quantity",
    "productname": "name",
    "description": "name",
    "nombre": "name",
    "largo": "length",
    "length_m": "length",
    "peso": "weight",
    "weight_kg": "weight",
    "order": "position",
    "posicion": "position",
}

LENGTH_IN_NAME = re.compile(r"(\d+(?:[.,]\d+)?)\s*(?:m|mts|metros?)\b", re.IGNORECASE)
WEIGHT_IN_NAME = re.compile(r"(\d+(?:[.,]\d+)?)\s*(kg|toneladas?|tn|ton)\b", re.IGNORECASE)
EXCEL_SUFFIXES = (".xlsx", ".xlsm")


def _number(text):
    return float(text.replace(",", "."))


def length_from_name(name):
    match = LENGTH_IN_NAME.search(name or "")
    return _number(match.group(1)) if match else None


def weight_from_name(name):
    match = WEIGHT_IN_NAME.search(name or "")
    if not match:
        return None
    value = _number(match.group(1))
    if match.group(2).lower().startswith("kg"):
        return value
    return value * 1000.0


def normalize_weight_kg(value):
    # Catalogue weights below 1 are recorded in tonnes.
    if value is not None and 0 < value < 1:
        return value * 1000.0
    return value


class ItemImporter:
    def parse_file(self, file_stream, filename=""):
        if str(filename or "").lower().endswith(EXCEL_SUFFIXES):
            df = pd.read_excel(file_stream, dtype=str, engine="openpyxl")
            df = df.fillna("")
        else:
            df = pd.read_csv(file_stream, dtype=str, keep_default_na=False)
        return self.parse_dataframe(df)

    def parse_dataframe(self, df):
        column_map = self._normalize_columns(df.columns)
        available = set(column_map.values())
        missing = [col for col in REQUIRED_COLUMNS if col not in available]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        df = df.rename(columns=column_map)
        allowed_columns = set(REQUIRED_COLUMNS + OPTIONAL_COLUMNS)
        df = df[[col for col in df.columns if col in allowed_columns]]

        items = []
        rejected_rows = []
        for row_number, row in enumerate(df.to_dict(orient="records"), start=1):
            item, errors = self.parse_item_row(row, default_position=row_number - 1)
            if item:
                items.append(item)
            else:
                rejected_rows.append(
                    {
                        "row": row_number,
                        "product_id": self._clean_value(row.get("product_id")),
                        "reason": " ".join(errors.values()),
                    }
                )

        total_rows = len(df)
        return {
            "items": items,
            "rejected_rows": rejected_rows,
            "total_rows": total_rows,
            "successfully_parsed": len(items),
            "parse_rate": (len(items) / total_rows * 100) if total_rows else 0,
        }

    def parse_item_row(self, row, default_position=None):
        product_id = self._clean_value(row.get("product_id"))
        name = self._clean_value(row.get("name")) or product_id
        quantity = self._clean_value(row.get("quantity"))
        length = self._clean_value(row.get("length"))
        weight = self._clean_value(row.get("weight"))
        position = self._clean_value(row.get("position"))

        errors = {}
        validation.validate_required(product_id, "product_id", errors)
        validation.validate_positive_int(quantity, "quantity", errors)
        validation.validate_optional_non_negative_float(length, "length", errors)
        validation.validate_optional_non_negative_float(weight, "weight", errors)
        validation.validate_optional_int(position, "position", errors)
        if errors:
            return None, errors

        length_m = validation.parse_number(length) if length else length_from_name(name)
        weight_kg = validation.parse_number(weight) if weight else weight_from_name(name)
        return (
            {
                "product_id": product_id,
                "name": name,
                "quantity": int(validation.parse_number(quantity)),
                "length": length_m or 0.0,
                "weight": normalize_weight_kg(weight_kg) or 0.0,
                "position": int(validation.parse_number(position)) if position else default_position,
            },
            {},
        )

    def _normalize_columns(self, columns):
        column_map = {}
        for col in columns:
            normalized = str(col).strip().lower().replace(" ", "_")
            compact = normalized.replace("_", "")
            if normalized in REQUIRED_COLUMNS + OPTIONAL_COLUMNS:
                column_map[col] = normalized
            elif normalized in COLUMN_ALIASES:
                column_map[col] = COLUMN_ALIASES[normalized]
            elif compact in COLUMN_ALIASES:
                column_map[col] = COLUMN_ALIASES[compact]
        return column_map

    def _clean_value(self, value):
        if value is None:
            return ""
        text = str(value).strip()
        if text.lower() in {"nan", "none"}:
            return ""
        return text
