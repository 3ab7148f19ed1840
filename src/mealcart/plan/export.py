"""Shopping list export as markdown, JSON or CSV."""

import csv
import io
import json
import re
from enum import Enum

from pydantic import BaseModel

from mealcart.normalize.units import format_quantity_unit
from mealcart.schemas import DEFAULT_STORE_SECTIONS, ShoppingItem, ShoppingList, utcnow

EXPORT_VERSION = "1.0"

SECTION_ORDER: dict[str, int] = {sid: index for index, (sid, _) in enumerate(DEFAULT_STORE_SECTIONS)}
SECTION_LABELS: dict[str, str] = dict(DEFAULT_STORE_SECTIONS)
CUSTOM_SECTION_ORDER = 999


class ExportFormat(str, Enum):
    MARKDOWN = "markdown"
    JSON = "json"
    CSV = "csv"


FILE_EXTENSIONS = {
    ExportFormat.MARKDOWN: "md",
    ExportFormat.JSON: "json",
    ExportFormat.CSV: "csv",
}

MEDIA_TYPES = {
    ExportFormat.MARKDOWN: "text/markdown",
    ExportFormat.JSON: "application/json",
    ExportFormat.CSV: "text/csv",
}


class ExportOptions(BaseModel):
    format: ExportFormat = ExportFormat.MARKDOWN
    include_recipe_sources: bool = True
    include_notes: bool = True
    include_checked_items: bool = False
    group_by_section: bool = True


# =============================================================================
# Helpers
# =============================================================================


def section_label(section_id: str) -> str:
    """Label for a section id; custom sections are title-cased."""
    if section_id in SECTION_LABELS:
        return SECTION_LABELS[section_id]
    return section_id.replace("_", " ").title()


def sort_sections(items: list[ShoppingItem]) -> list[tuple[str, list[ShoppingItem]]]:
    """Group by store section in store order, items by name within a section."""
    grouped: dict[str, list[ShoppingItem]] = {}
    for item in items:
        grouped.setdefault(item.store_section or "other", []).append(item)

    ordered = sorted(
        grouped.items(),
        key=lambda entry: (SECTION_ORDER.get(entry[0], CUSTOM_SECTION_ORDER), entry[0]),
    )
    return [(sid, sorted(section, key=lambda i: i.name.lower())) for sid, section in ordered]


def format_item_quantity(item: ShoppingItem) -> str:
    if item.quantity is None:
        return ""
    return format_quantity_unit(item.quantity, item.unit)


def sanitize_filename(name: str) -> str:
    cleaned = re.sub(r'[/\\?%*:|"<>]', "-", name)
    return re.sub(r"\s+", "_", cleaned).strip()[:100]


def export_filename(shopping_list: ShoppingList, export_format: ExportFormat) -> str:
    return f"{sanitize_filename(shopping_list.name)}.{FILE_EXTENSIONS[export_format]}"


def _visible_items(shopping_list: ShoppingList, options: ExportOptions) -> list[ShoppingItem]:
    if options.include_checked_items:
        return list(shopping_list.items)
    return [i for i in shopping_list.items if not i.is_checked]


# =============================================================================
# Markdown
# =============================================================================


def _format_date_range(shopping_list: ShoppingList) -> str | None:
    start, end = shopping_list.date_range_start, shopping_list.date_range_end
    if start is None or end is None:
        return None
    return f"{start.strftime('%b')} {start.day} - {end.strftime('%b')} {end.day}, {end.year}"


def _markdown_item(item: ShoppingItem, options: ExportOptions) -> str:
    parts = ["- [x]" if item.is_checked else "- [ ]"]

    quantity = format_item_quantity(item)
    parts.append(f"**{quantity}** {item.name}" if quantity else item.name)

    if options.include_notes and item.notes:
        parts.append(f"*({item.notes})*")
    if item.is_estimated and item.estimation_note:
        parts.append(f"[~{item.estimation_note}]")

    line = " ".join(parts)

    if options.include_recipe_sources and item.source_recipe_details:
        sources = []
        for source in item.source_recipe_details:
            amount = format_quantity_unit(source.quantity, source.unit) if source.quantity else ""
            sources.append(f"{source.recipe_name} ({amount})" if amount else source.recipe_name)
        line += f"\n  - *From: {', '.join(sources)}*"

    return line


def to_markdown(shopping_list: ShoppingList, options: ExportOptions) -> str:
    items = _visible_items(shopping_list, options)
    lines = [f"# {shopping_list.name}", ""]

    date_range = _format_date_range(shopping_list)
    if date_range:
        lines.append(f"**Date Range:** {date_range}")
    lines.append(f"**Total Items:** {len(items)}")
    lines.append("")

    if not items:
        lines.append("*No items to display.*")
        return "\n".join(lines)

    if options.group_by_section:
        for section_id, section_items in sort_sections(items):
            lines.append(f"## {section_label(section_id)}")
            lines.append("")
            lines.extend(_markdown_item(i, options) for i in section_items)
            lines.append("")
    else:
        lines.append("## Items")
        lines.append("")
        lines.extend(_markdown_item(i, options) for i in sorted(items, key=lambda i: i.name.lower()))
        lines.append("")

    lines.append("---")
    lines.append("*Exported from Mealcart*")
    return "\n".join(lines)


# =============================================================================
# JSON
# =============================================================================


def _json_item(item: ShoppingItem, options: ExportOptions) -> dict:
    data = {
        "id": item.id,
        "name": item.name,
        "quantity": item.quantity,
        "unit": item.unit.value if item.unit else None,
        "is_checked": item.is_checked,
        "is_manual": item.is_manual,
        "is_recurring": item.is_recurring,
    }
    if options.include_notes and item.notes:
        data["notes"] = item.notes
    if item.is_estimated:
        data["is_estimated"] = True
        if item.estimation_note:
            data["estimation_note"] = item.estimation_note
    if options.include_recipe_sources and item.source_recipe_details:
        data["sources"] = [s.model_dump(mode="json") for s in item.source_recipe_details]
    return data


def to_json(shopping_list: ShoppingList, options: ExportOptions) -> str:
    items = _visible_items(shopping_list, options)
    start, end = shopping_list.date_range_start, shopping_list.date_range_end
    payload = {
        "export_version": EXPORT_VERSION,
        "exported_at": utcnow().isoformat(),
        "list": {
            "id": shopping_list.id,
            "name": shopping_list.name,
            "date_range_start": start.isoformat() if start else None,
            "date_range_end": end.isoformat() if end else None,
            "created_at": shopping_list.created_at.isoformat(),
            "updated_at": shopping_list.updated_at.isoformat(),
        },
        "item_count": len(items),
        "sections": [
            {
                "id": section_id,
                "name": section_label(section_id),
                "items": [_json_item(i, options) for i in section_items],
            }
            for section_id, section_items in sort_sections(items)
        ],
    }
    return json.dumps(payload, indent=2)


# =============================================================================
# CSV
# =============================================================================


def to_csv(shopping_list: ShoppingList, options: ExportOptions) -> str:
    headers = ["Name", "Quantity", "Unit", "Section", "Checked"]
    if options.include_notes:
        headers.append("Notes")
    if options.include_recipe_sources:
        headers.append("Recipe Sources")

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)

    for section_id, section_items in sort_sections(_visible_items(shopping_list, options)):
        for item in section_items:
            row = [
                item.name,
                "" if item.quantity is None else f"{item.quantity:g}",
                item.unit.value if item.unit else "",
                section_label(section_id),
                "Yes" if item.is_checked else "No",
            ]
            if options.include_notes:
                row.append(item.notes or "")
            if options.include_recipe_sources:
                row.append("; ".join(s.recipe_name for s in item.source_recipe_details))
            writer.writerow(row)

    return buffer.getvalue().rstrip("\n")


_EXPORTERS = {
    ExportFormat.MARKDOWN: to_markdown,
    ExportFormat.JSON: to_json,
    ExportFormat.CSV: to_csv,
}


def export_shopping_list(shopping_list: ShoppingList, options: ExportOptions | None = None) -> str:
    """Render a shopping list in the format named by `options.format`."""
    options = options or ExportOptions()
    return _EXPORTERS[options.format](shopping_list, options)
