# wipflow/services/topology.py
"""
Static process topology.

Two disjoint ordered sequences live inside one global catalog:
  - the component sequence, run by sub-assemblies
  - the assembly sequence, run by final items (last step is packing)

The hand-off between them is declared as a ConvergenceEdge: good output
at the edge's source step (on a sub-assembly) lands in the target step's
buffer on the parent item, and the target step is where finished
sub-assemblies are consumed.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple


class ProcessStep(str, Enum):
    CUTTING = "CUTTING"
    PUNCHING = "PUNCHING"
    PRESSING = "PRESSING"
    WELDING = "WELDING"
    PHOSPHATING = "PHOSPHATING"
    PAINTING = "PAINTING"
    PACKING = "PACKING"


COMPONENT_STEPS: Tuple[ProcessStep, ...] = (
    ProcessStep.CUTTING,
    ProcessStep.PUNCHING,
    ProcessStep.PRESSING,
)
ASSEMBLY_STEPS: Tuple[ProcessStep, ...] = (
    ProcessStep.WELDING,
    ProcessStep.PHOSPHATING,
    ProcessStep.PAINTING,
    ProcessStep.PACKING,
)
ALL_STEPS: Tuple[ProcessStep, ...] = COMPONENT_STEPS + ASSEMBLY_STEPS


@dataclass(frozen=True)
class ConvergenceEdge:
    source: ProcessStep  # component step feeding the parent
    target: ProcessStep  # assembly step consuming sub-assemblies


@dataclass(frozen=True)
class ProcessTopology:
    component_steps: Tuple[ProcessStep, ...] = COMPONENT_STEPS
    assembly_steps: Tuple[ProcessStep, ...] = ASSEMBLY_STEPS
    convergence: ConvergenceEdge = ConvergenceEdge(
        source=ProcessStep.PRESSING, target=ProcessStep.WELDING
    )

    @property
    def catalog(self) -> Tuple[ProcessStep, ...]:
        return self.component_steps + self.assembly_steps

    @property
    def convergence_step(self) -> ProcessStep:
        return self.convergence.target

    @property
    def packing_step(self) -> ProcessStep:
        return self.assembly_steps[-1]

    def parse(self, step) -> Optional[ProcessStep]:
        """Return the ProcessStep for a name, or None if it is not in the catalog."""
        if isinstance(step, ProcessStep):
            return step if step in self.catalog else None
        try:
            parsed = ProcessStep(str(step).upper())
        except ValueError:
            return None
        return parsed if parsed in self.catalog else None

    def position(self, step) -> int:
        parsed = self.parse(step)
        return self.catalog.index(parsed) if parsed is not None else -1

    def is_component_step(self, step) -> bool:
        return self.parse(step) in self.component_steps

    def is_assembly_step(self, step) -> bool:
        return self.parse(step) in self.assembly_steps

    def ordered(self, steps: Iterable) -> List[ProcessStep]:
        """Known steps from `steps`, de-duplicated, in catalog order."""
        parsed = {self.parse(s) for s in steps}
        parsed.discard(None)
        return sorted(parsed, key=self.catalog.index)

    @staticmethod
    def previous(sequence: Sequence[ProcessStep], step: ProcessStep) -> Optional[ProcessStep]:
        if step not in sequence:
            return None
        idx = list(sequence).index(step)
        return sequence[idx - 1] if idx > 0 else None

    @staticmethod
    def following(sequence: Sequence[ProcessStep], step: ProcessStep) -> Optional[ProcessStep]:
        if step not in sequence:
            return None
        idx = list(sequence).index(step)
        return sequence[idx + 1] if idx + 1 < len(sequence) else None


DEFAULT_TOPOLOGY = ProcessTopology()
