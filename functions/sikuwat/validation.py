"""
Field validation shared by the admin content and planting routes.

Each validator returns a ValidationResult; errors block the write, warnings are
passed back to the caller alongside the stored row.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

from shared.constants import (
    ARTICLE_CONTENT_MAX_LENGTH,
    COMMODITY_MIN_LENGTH,
    CONTENT_MIN_LENGTH,
    PRICE_WARNING_THRESHOLD,
    SEED_TYPE_MIN_LENGTH,
    TIP_CONTENT_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
)


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_date(value: Any) -> Optional[date]:
    """Parse an ISO date or datetime string, returning None when invalid."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip()).date()
    except ValueError:
        return None


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_market_price(data: Mapping[str, Any]) -> ValidationResult:
    result = ValidationResult()

    commodity = _text(data.get("commodity"))
    if not commodity:
        result.errors.append("Nama komoditas harus diisi")
    elif len(commodity) < COMMODITY_MIN_LENGTH:
        result.errors.append("Nama komoditas minimal 3 karakter")

    price = data.get("price")
    if not _is_number(price) or price <= 0:
        result.errors.append("Harga harus diisi dan lebih dari 0")
    elif not math.isfinite(price):
        result.errors.append("Harga harus berupa angka valid")
    elif price > PRICE_WARNING_THRESHOLD:
        result.warnings.append("Harga terlihat sangat tinggi, mohon verifikasi")

    if not _text(data.get("unit")):
        result.errors.append("Satuan harus diisi")

    return result


def _validate_title_and_content(
    result: ValidationResult,
    data: Mapping[str, Any],
    *,
    label: str,
    content_max: int,
    content_too_long: str,
) -> None:
    title = _text(data.get("title"))
    if not title:
        result.errors.append(f"Judul {label} harus diisi")
    elif len(title) < TITLE_MIN_LENGTH:
        result.errors.append("Judul minimal 5 karakter")
    elif len(title) > TITLE_MAX_LENGTH:
        result.errors.append("Judul maksimal 500 karakter")

    content = _text(data.get("content"))
    if not content:
        result.errors.append(f"Konten {label} harus diisi")
    elif len(content) < CONTENT_MIN_LENGTH:
        result.errors.append("Konten minimal 20 karakter")
    elif len(content) > content_max:
        result.errors.append(content_too_long)


def validate_article(data: Mapping[str, Any]) -> ValidationResult:
    result = ValidationResult()
    _validate_title_and_content(
        result,
        data,
        label="artikel",
        content_max=ARTICLE_CONTENT_MAX_LENGTH,
        content_too_long="Konten terlalu panjang (max 50000 karakter)",
    )
    url = _text(data.get("url"))
    if url and not is_valid_url(url):
        result.warnings.append("URL tidak valid")
    return result


def validate_tip(data: Mapping[str, Any]) -> ValidationResult:
    result = ValidationResult()
    _validate_title_and_content(
        result,
        data,
        label="tips",
        content_max=TIP_CONTENT_MAX_LENGTH,
        content_too_long="Konten terlalu panjang",
    )
    if not _text(data.get("category")):
        result.warnings.append(
            "Kategori sebaiknya diisi untuk organisasi yang lebih baik"
        )
    return result


def validate_planting(
    data: Mapping[str, Any], today: date | None = None
) -> ValidationResult:
    result = ValidationResult()
    today = today or date.today()

    seed_type = _text(data.get("seed_type"))
    if not seed_type:
        result.errors.append("Jenis bibit harus diisi")
    elif len(seed_type) < SEED_TYPE_MIN_LENGTH:
        result.errors.append("Jenis bibit minimal 3 karakter")

    seed_count = data.get("seed_count")
    if not _is_number(seed_count) or seed_count <= 0:
        result.errors.append("Jumlah bibit harus diisi dan lebih dari 0")
    elif not float(seed_count).is_integer():
        result.errors.append("Jumlah bibit harus berupa angka bulat")

    planting_date = None
    if not data.get("planting_date"):
        result.errors.append("Tanggal tanam harus diisi")
    else:
        planting_date = parse_date(data.get("planting_date"))
        if planting_date is None:
            result.errors.append("Tanggal tanam tidak valid")
        elif planting_date > today:
            result.errors.append("Tanggal tanam tidak boleh di masa depan")

    if data.get("harvest_date"):
        harvest_date = parse_date(data.get("harvest_date"))
        if harvest_date is None:
            result.errors.append("Tanggal panen tidak valid")
        elif planting_date is not None and harvest_date < planting_date:
            result.errors.append("Tanggal panen harus setelah tanggal tanam")

    for key, negative_message, invalid_message in (
        (
            "harvest_yield",
            "Hasil panen tidak boleh negatif",
            "Hasil panen harus berupa angka valid",
        ),
        (
            "sales_amount",
            "Jumlah penjualan tidak boleh negatif",
            "Jumlah penjualan harus berupa angka valid",
        ),
    ):
        value = data.get(key)
        if value is None:
            continue
        if not _is_number(value) or not math.isfinite(value):
            result.errors.append(invalid_message)
        elif value < 0:
            result.errors.append(negative_message)

    return result
