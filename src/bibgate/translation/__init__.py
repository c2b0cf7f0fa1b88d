# ABOUTME: Boundary to the translator execution engine plus selection handling.
# ABOUTME: Re-exports the runner protocol, its data types, and ChoiceSet.

from bibgate.translation.choices import ChoiceSet
from bibgate.translation.runner import (
    Detection,
    NullTranslationRunner,
    SelectCallback,
    TargetKind,
    TranslationRunner,
    TranslationTarget,
    load_runner,
)

__all__ = [
    "ChoiceSet",
    "Detection",
    "NullTranslationRunner",
    "SelectCallback",
    "TargetKind",
    "TranslationRunner",
    "TranslationTarget",
    "load_runner",
]
