from __future__ import annotations

import pytest

from battlemap.context import Context
from battlemap.pipeline import TacticalMapResult, generate_tactical_map


@pytest.fixture(scope="session")
def scenario_context() -> Context:
    return Context("forest", "highland", "river", "settled", "autumn")


@pytest.fixture(scope="session")
def scenario_map(scenario_context: Context) -> TacticalMapResult:
    return generate_tactical_map(40, 40, scenario_context, "deterministic-test")
