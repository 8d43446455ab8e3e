"""
Typed tabular boundary: DataFrame or row mappings in, ObservationTable out.
"""

from .table import Observation, ObservationTable, build_observation_table

__all__ = ["Observation", "ObservationTable", "build_observation_table"]
