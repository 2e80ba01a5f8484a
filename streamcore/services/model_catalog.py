"""Helpers for turning vendor model catalogs into short, stable pick lists."""

import re
from typing import Callable, Iterable

# First suffix marker in an id; everything from here on is a variant of the base model.
_SUFFIX = re.compile(
    r"-(?:preview|exp|experimental|latest|tuning)(?=-|$)"
    r"|-\d{4}-\d{2}-\d{2}(?=-|$)"
    r"|-\d{2}-\d{2}(?=-|$)"
    r"|-\d{3,4}$"
)


def base_model_id(model_id: str) -> str:
    match = _SUFFIX.search(model_id)
    return model_id[: match.start()] if match else model_id


def is_clean_id(model_id: str) -> bool:
    return base_model_id(model_id) == model_id


def collapse_variants(model_ids: Iterable[str]) -> list[str]:
    """One id per base model: the clean id if present, else the first suffixed id seen.

    >>> collapse_variants(["gpt-4", "gpt-4-preview", "gpt-4-preview-2024-01-01"])
    ['gpt-4']
    """
    groups: dict[str, dict] = {}
    for model_id in model_ids:
        entry = groups.setdefault(base_model_id(model_id), {"clean": None, "suffixed": []})
        if is_clean_id(model_id):
            entry["clean"] = model_id
        else:
            entry["suffixed"].append(model_id)

    selected = []
    for entry in groups.values():
        if entry["clean"]:
            selected.append(entry["clean"])
        elif entry["suffixed"]:
            selected.append(entry["suffixed"][0])
    return selected


def sort_models(model_ids: Iterable[str]) -> list[str]:
    """De-duplicate and sort case-insensitively."""
    return sorted(set(model_ids), key=lambda m: (m.lower(), m))


def filter_models(
    model_ids: Iterable[str],
    required: str | None = None,
    excluded: Iterable[str] = (),
) -> list[str]:
    excluded = [term.lower() for term in excluded]
    kept = []
    for model_id in model_ids:
        lowered = model_id.lower()
        if required and required not in lowered:
            continue
        if any(term in lowered for term in excluded):
            continue
        kept.append(model_id)
    return kept


def normalize_catalog(
    model_ids: Iterable[str],
    keep: Callable[[list[str]], list[str]] = list,
) -> list[str]:
    """Filter with ``keep``, collapse dated/preview variants, then sort."""
    return sort_models(collapse_variants(keep(list(model_ids))))
