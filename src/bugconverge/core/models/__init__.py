"""Catalog of software reliability growth models."""

from typing import Iterable

from .base import GrowthModel, ModelCategory, ObservedCurve
from .basic import BASIC_MODELS
from .change_point import CHANGE_POINT_MODELS
from .coverage import COVERAGE_MODELS
from .fre import FRE_MODELS
from .heuristics import InitializationConfig
from .imperfect_debug import IMPERFECT_DEBUG_MODELS
from .tef import TEF_MODELS

CATALOG: dict[ModelCategory, tuple[GrowthModel, ...]] = {
    ModelCategory.BASIC: BASIC_MODELS,
    ModelCategory.IMPERFECT_DEBUG: IMPERFECT_DEBUG_MODELS,
    ModelCategory.CHANGE_POINT: CHANGE_POINT_MODELS,
    ModelCategory.COVERAGE: COVERAGE_MODELS,
    ModelCategory.TEF: TEF_MODELS,
    ModelCategory.FRE: FRE_MODELS,
}

_BY_NAME = {model.name: model for models in CATALOG.values() for model in models}

EXTENDED_CATEGORIES = tuple(c for c in ModelCategory if c != ModelCategory.BASIC)


def parse_categories(names: Iterable[str]) -> list[ModelCategory]:
    """Resolve category names, expanding "extended" and "all".

    Args:
        names: Category values, case-insensitive

    Returns:
        Unique categories in catalog order

    Raises:
        ValueError: If a name is not a category
    """
    selected: set[ModelCategory] = set()
    for name in names:
        key = name.strip().lower().replace("-", "_")
        if key == "all":
            selected.update(ModelCategory)
        elif key == "extended":
            selected.update(EXTENDED_CATEGORIES)
        else:
            try:
                selected.add(ModelCategory(key))
            except ValueError:
                valid = ", ".join([c.value for c in ModelCategory] + ["extended", "all"])
                raise ValueError(f"Unknown model category '{name}'. Valid options: {valid}") from None
    return [c for c in ModelCategory if c in selected]


def get_models(categories: Iterable[ModelCategory | str] | None = None) -> list[GrowthModel]:
    """Models of the requested categories in catalog order.

    Args:
        categories: Categories or category names; None means basic only

    Returns:
        List of models
    """
    if categories is None:
        wanted = [ModelCategory.BASIC]
    else:
        wanted = parse_categories(c.value if isinstance(c, ModelCategory) else c for c in categories)
    return [model for category in wanted for model in CATALOG[category]]


def get_model(name: str) -> GrowthModel:
    """Look up a model by catalog name.

    Raises:
        KeyError: If no model has that name
    """
    try:
        return _BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown model '{name}'. Valid names: {', '.join(_BY_NAME)}") from None


def model_names() -> list[str]:
    """All catalog names in catalog order."""
    return list(_BY_NAME)


__all__ = [
    "CATALOG",
    "GrowthModel",
    "InitializationConfig",
    "ModelCategory",
    "ObservedCurve",
    "get_model",
    "get_models",
    "model_names",
    "parse_categories",
]
