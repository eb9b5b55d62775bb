"""Home Assistant-bound helper functions for CareScheduler.

This module contains functions that REQUIRE Home Assistant dependencies or
that shape data for Home Assistant surfaces (signals, flow schemas).

NOTE: Pure functions belong in utils/, NOT here.

Submodules:
    - entity_helpers: Dispatcher signal naming
    - flow_helpers: Config/options flow schemas and validators
"""

from . import entity_helpers, flow_helpers

__all__ = ["entity_helpers", "flow_helpers"]
