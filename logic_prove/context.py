from typing import List, Optional
from pydantic import BaseModel, Field
import itertools
import logging


class ProverSettings(BaseModel):
    """Search ceilings shared by both engines."""
    tableau_timeout: int = Field(default=1000, description="maximum number of tableau rule dispatches")
    deduction_timeout: int = Field(default=1000, description="maximum number of natural deduction passes")
    max_negations: int = Field(default=4, description="how many stacked negations a derived line or goal may carry")


class Diagnostic(BaseModel):
    source: str = Field(description="engine that reported the diagnostic")
    message: str


class ProofContext:
    """Per-run state: diagnostics and the identifier counter.

    A context is created fresh for each run unless the caller passes one in;
    a reused context has to be ``reset()`` between independent runs or the
    previous run's diagnostics carry over.
    """

    def __init__(self, settings: Optional[ProverSettings] = None):
        self.settings = settings if settings is not None else ProverSettings()
        self.errors: List[Diagnostic] = []
        self.warnings: List[Diagnostic] = []
        self._id_counter = itertools.count(1)

    def __repr__(self):
        return f"ProofContext(errors={len(self.errors)}, warnings={len(self.warnings)})"

    def next_identifier(self) -> int:
        return next(self._id_counter)

    def error(self, source: str, message: str):
        logging.error(f"{source}:error={message}")
        self.errors.append(Diagnostic(source=source, message=message))

    def warning(self, source: str, message: str):
        logging.warning(f"{source}:warning={message}")
        self.warnings.append(Diagnostic(source=source, message=message))

    def saw_error(self) -> bool:
        return len(self.errors) > 0

    def saw_warning(self) -> bool:
        return len(self.warnings) > 0

    def reset(self):
        self.errors = []
        self.warnings = []
        self._id_counter = itertools.count(1)
