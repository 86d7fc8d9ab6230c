# ===================================== IMPORTS ====================================== #

# Standard Library Imports
from typing import Iterable, List, Optional

# ==================================== EXCEPTIONS ==================================== #

class ContrastError(ValueError):
    """Base class for errors raised by the contrast_16s pipeline."""
    pass


class InputShapeError(ContrastError):
    """Input tables are malformed or do not line up with each other.

    Raised for mismatched sample sets between the count table and metadata,
    empty tables, non-numeric or negative cells, and duplicated IDs. The
    offending identifiers are kept on ``ids`` and listed in the message.
    """

    def __init__(self, message: str, ids: Optional[Iterable] = None):
        self.ids: List = [str(i) for i in ids] if ids is not None else []
        if self.ids:
            shown = self.ids[:20]
            more = f" (+{len(self.ids) - 20} more)" if len(self.ids) > 20 else ""
            message = f"{message}: {shown}{more}"
        super().__init__(message)


class DegenerateFilterError(ContrastError):
    """A filtering step left too few taxa to continue."""
    pass


class StatisticalPreconditionError(ContrastError):
    """A statistical test was asked to run on inputs it cannot handle."""
    pass
