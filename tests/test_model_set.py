"""Model set validation: mode decision and universe selection defaults."""

from __future__ import annotations

import pytest

from conftest import RecordingAlpha, StaticSelection
from tradeframe.models.null import NullAlphaModel
from tradeframe.models.selection import ManualUniverseSelectionModel
from tradeframe.shell.errors import FrameworkConfigurationError
from tradeframe.shell.model_set import FrameworkMode, ModelSet


# --- Null alpha ---

def test_null_alpha_disables_framework():
    models = ModelSet()
    mode = models.validate(bridge=False)

    assert mode == FrameworkMode.LEGACY
    assert models.framework_enabled is False
    assert models.bridge_mode is False
    # Legacy algorithms fall back to manual selection
    assert isinstance(models.universe_selection, ManualUniverseSelectionModel)


def test_null_alpha_in_bridge_keeps_framework():
    models = ModelSet()
    mode = models.validate(bridge=True)

    assert mode == FrameworkMode.BRIDGE
    assert models.framework_enabled is True
    assert isinstance(models.universe_selection, ManualUniverseSelectionModel)


def test_derived_null_alpha_is_detected():
    class QuietAlpha(NullAlphaModel):
        pass

    models = ModelSet(alpha=QuietAlpha())
    assert models.validate(bridge=False) == FrameworkMode.LEGACY


# --- Universe selection ---

def test_framework_without_universe_selection_fails(calls):
    models = ModelSet(alpha=RecordingAlpha(calls))
    with pytest.raises(FrameworkConfigurationError, match="universe selection model"):
        models.validate(bridge=False)


def test_bridge_without_universe_selection_defaults_to_manual(calls):
    models = ModelSet(alpha=RecordingAlpha(calls))
    assert models.validate(bridge=True) == FrameworkMode.BRIDGE
    assert isinstance(models.universe_selection, ManualUniverseSelectionModel)


def test_configured_universe_selection_is_kept(calls):
    selection = StaticSelection()
    models = ModelSet(universe_selection=selection, alpha=RecordingAlpha(calls))

    assert models.validate(bridge=False) == FrameworkMode.FRAMEWORK
    assert models.universe_selection is selection
    assert models.framework_enabled is True
