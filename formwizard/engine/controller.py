"""Stage controller - wizard position and per-stage completion status."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class StageStatus(str, Enum):
    """Outcome of the last validation attempt for a stage."""

    UNTOUCHED = 'untouched'
    INCOMPLETE = 'incomplete'
    COMPLETE = 'complete'


@dataclass
class TransitionResult:
    """What a forward transition did."""

    moved: bool
    submitted: bool
    index: int
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class StageProgress:
    """One entry of the progress indicator."""

    index: int
    name: str
    label: str
    status: StageStatus
    is_current: bool
    can_jump: bool


class StageController:
    """
    Drives the wizard across stages.

    Key responsibilities:
    - Track the current stage index
    - Track each stage's status (untouched, incomplete, complete)
    - Gate forward transitions on validation
    - Allow jumps only to stages that have been attempted
    """

    def __init__(self, stage_names: List[str], stage_labels: Optional[List[str]] = None):
        """
        Initialize the controller.

        Args:
            stage_names: Stage names in wizard order
            stage_labels: Display labels, defaults to the names
        """
        if not stage_names:
            raise ValueError("A wizard needs at least one stage")
        self.stage_names = list(stage_names)
        self.stage_labels = list(stage_labels) if stage_labels else list(stage_names)
        self.index = 0
        self.statuses: Dict[str, StageStatus] = {name: StageStatus.UNTOUCHED for name in self.stage_names}
        self.errors: Dict[str, str] = {}
        self.submit_count = 0

    @property
    def stage_count(self) -> int:
        return len(self.stage_names)

    @property
    def current_stage(self) -> str:
        return self.stage_names[self.index]

    @property
    def current_status(self) -> StageStatus:
        return self.statuses[self.current_stage]

    @property
    def is_last(self) -> bool:
        return self.index == self.stage_count - 1

    def status_of(self, index: int) -> StageStatus:
        return self.statuses[self.stage_names[index]]

    def submit(self, validate: Callable[[], Dict[str, str]]) -> TransitionResult:
        """Forward transition ("Next" or, on the last stage, "Submit").

        Args:
            validate: Returns the current stage's error map

        Returns:
            TransitionResult describing the outcome
        """
        errors = validate()
        stage = self.current_stage

        if errors:
            self.statuses[stage] = StageStatus.INCOMPLETE
            self.errors = dict(errors)
            logger.debug(f"Stage '{stage}' blocked with {len(errors)} error(s)")
            return TransitionResult(moved=False, submitted=False, index=self.index, errors=dict(errors))

        self.statuses[stage] = StageStatus.COMPLETE
        self.errors = {}

        if self.is_last:
            self.submit_count += 1
            logger.info(f"Form submitted from stage '{stage}'")
            return TransitionResult(moved=False, submitted=True, index=self.index)

        self.index += 1
        logger.debug(f"Advanced from '{stage}' to '{self.current_stage}'")
        return TransitionResult(moved=True, submitted=False, index=self.index)

    def previous(self) -> bool:
        """Go back one stage without validating. Returns False at the first stage."""
        if self.index == 0:
            return False
        self.index -= 1
        self.errors = {}
        return True

    def can_jump(self, target: int) -> bool:
        if not 0 <= target < self.stage_count:
            return False
        if target == self.index:
            return False
        return self.status_of(target) != StageStatus.UNTOUCHED

    def jump(self, target: int) -> bool:
        """Jump to a stage from the progress indicator.

        Only stages that have been attempted can be targeted. No validation
        is run and no status changes.

        Returns:
            True if the index changed
        """
        if not self.can_jump(target):
            logger.debug(f"Jump to stage {target} refused")
            return False
        self.index = target
        self.errors = {}
        return True

    def progress(self) -> List[StageProgress]:
        """Entries for a progress indicator, in stage order."""
        return [
            StageProgress(
                index=i,
                name=name,
                label=self.stage_labels[i],
                status=self.statuses[name],
                is_current=(i == self.index),
                can_jump=self.can_jump(i),
            )
            for i, name in enumerate(self.stage_names)
        ]
