"""
Planting statistics, monthly harvest series and CSV export.
"""

from __future__ import annotations

import csv
import io
from dataclasses import asdict, dataclass
from typing import Iterable

from shared.types import HarvestFilter
from sikuwat.db import PlantingRecord
from sikuwat.validation import parse_date

EXPORT_COLUMNS = [
    "Jenis Bibit",
    "Tanggal Tanam",
    "Jumlah Bibit",
    "Status",
    "Tanggal Panen",
    "Hasil Panen (kg)",
    "Pendapatan (Rp)",
]


@dataclass
class PlantingStats:
    total_plantings: int = 0
    total_seeds: int = 0
    total_harvested: int = 0
    total_yield: float = 0.0
    total_revenue: float = 0.0
    avg_yield: float = 0.0
    success_rate: float = 0.0

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class MonthlyHarvest:
    month: str
    harvest: float = 0.0
    revenue: float = 0.0
    count: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def has_yield(planting: PlantingRecord) -> bool:
    return bool(planting.harvest_yield and planting.harvest_yield > 0)


def calculate_planting_stats(plantings: Iterable[PlantingRecord]) -> PlantingStats:
    plantings = list(plantings)
    if not plantings:
        return PlantingStats()

    harvested = [p for p in plantings if has_yield(p)]
    total_yield = sum(p.harvest_yield or 0 for p in harvested)
    total_revenue = sum(p.sales_amount or 0 for p in harvested)
    avg_yield = total_yield / len(harvested) if harvested else 0.0
    success_rate = len(harvested) / len(plantings) * 100

    return PlantingStats(
        total_plantings=len(plantings),
        total_seeds=sum(int(p.seed_count or 0) for p in plantings),
        total_harvested=len(harvested),
        total_yield=round(total_yield, 2),
        total_revenue=round(total_revenue, 2),
        avg_yield=round(avg_yield, 2),
        success_rate=round(success_rate, 2),
    )


def monthly_harvest_series(
    plantings: Iterable[PlantingRecord],
) -> list[MonthlyHarvest]:
    """Group harvested plantings by harvest month (YYYY-MM), oldest first."""
    months: dict[str, MonthlyHarvest] = {}
    for planting in plantings:
        harvest_date = parse_date(planting.harvest_date)
        if harvest_date is None:
            continue
        key = f"{harvest_date.year}-{harvest_date.month:02d}"
        entry = months.setdefault(key, MonthlyHarvest(month=key))
        entry.harvest += planting.harvest_yield or 0
        entry.revenue += planting.sales_amount or 0
        entry.count += 1
    return [months[key] for key in sorted(months)]


def filter_plantings(
    plantings: Iterable[PlantingRecord],
    search: str = "",
    status: HarvestFilter = HarvestFilter.ALL,
) -> list[PlantingRecord]:
    needle = (search or "").strip().lower()
    selected = []
    for planting in plantings:
        if needle and needle not in planting.seed_type.lower():
            continue
        if status == HarvestFilter.PLANTED and has_yield(planting):
            continue
        if status == HarvestFilter.HARVESTED and not has_yield(planting):
            continue
        selected.append(planting)
    return selected


def format_price(amount: float) -> str:
    """Format a rupiah amount with Indonesian thousands separators."""
    return f"{round(amount):,}".replace(",", ".")


def format_currency(amount: float) -> str:
    return f"Rp {format_price(amount)}"


def format_date(value: str | None) -> str:
    if not value:
        return "-"
    parsed = parse_date(value)
    if parsed is None:
        return value
    return parsed.strftime("%d/%m/%Y")


def export_plantings_csv(plantings: Iterable[PlantingRecord]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for planting in plantings:
        harvested = has_yield(planting)
        writer.writerow(
            [
                planting.seed_type or "-",
                format_date(planting.planting_date),
                planting.seed_count or 0,
                "Sudah Panen" if harvested else "Belum Panen",
                format_date(planting.harvest_date),
                planting.harvest_yield if harvested else "-",
                format_price(planting.sales_amount)
                if planting.sales_amount
                else "-",
            ]
        )
    return output.getvalue()
