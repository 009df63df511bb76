# utils/parts_import.py
"""Bulk catalog import from a supplier price list (CSV)."""
import io
import logging
from dataclasses import dataclass, field
from typing import List

import pandas as pd
from sqlalchemy.orm import Session

from models.product import Part

logger = logging.getLogger(__name__)

# Spreadsheet header -> Part column
COLUMN_MAP = {
    "item code": "item_code",
    "pipe size": "pipe_size",
    "description": "description",
    "product type": "type",
    "type": "type",
    "t1": "price_t1",
    "price t1": "price_t1",
    "t2": "price_t2",
    "price t2": "price_t2",
    "t3": "price_t3",
    "price t3": "price_t3",
    "in stock": "in_stock",
    "popular": "is_popular",
}
REQUIRED = ("item_code", "pipe_size", "description", "type", "price_t1", "price_t2", "price_t3")


@dataclass
class ImportResult:
    created: int = 0
    updated: int = 0
    skipped: List[str] = field(default_factory=list)


def read_price_list(content: bytes) -> pd.DataFrame:
    df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False)
    df.columns = [COLUMN_MAP.get(str(c).strip().lower(), str(c).strip().lower()) for c in df.columns]
    missing = [c for c in REQUIRED if c not in df.columns]
    if missing:
        raise ValueError(f"Missing columns: {', '.join(missing)}")
    df["item_code"] = df["item_code"].str.strip().str.upper()
    df = df[df["item_code"] != ""].copy()
    for col in ("price_t1", "price_t2", "price_t3"):
        df[col] = pd.to_numeric(df[col].str.replace("$", "", regex=False).str.strip(), errors="coerce")
    if "in_stock" in df.columns:
        df["in_stock"] = pd.to_numeric(df["in_stock"], errors="coerce").fillna(0).astype(int)
    if "is_popular" in df.columns:
        df["is_popular"] = df["is_popular"].str.strip().str.lower().isin(["1", "true", "yes", "y"])
    return df


def import_parts(db: Session, df: pd.DataFrame) -> ImportResult:
    """Upsert rows by item code; rows with a missing or negative price are skipped."""
    result = ImportResult()
    existing = {p.item_code: p for p in db.query(Part).all()}

    for row in df.to_dict(orient="records"):
        code = row["item_code"]
        prices = [row["price_t1"], row["price_t2"], row["price_t3"]]
        if any(pd.isna(p) or p < 0 for p in prices):
            result.skipped.append(code)
            continue

        values = {
            "pipe_size": row["pipe_size"].strip(),
            "description": row["description"].strip(),
            "type": row["type"].strip(),
            "price_t1": float(prices[0]),
            "price_t2": float(prices[1]),
            "price_t3": float(prices[2]),
        }
        if "in_stock" in row:
            values["in_stock"] = int(row["in_stock"])
        if "is_popular" in row:
            values["is_popular"] = bool(row["is_popular"])

        part = existing.get(code)
        if part is None:
            part = Part(item_code=code, **values)
            db.add(part)
            existing[code] = part
            result.created += 1
        else:
            for key, value in values.items():
                setattr(part, key, value)
            result.updated += 1

    db.commit()
    logger.info("Parts import: %s created, %s updated, %s skipped",
                result.created, result.updated, len(result.skipped))
    return result
