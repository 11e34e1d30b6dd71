"""crowdledger - persistent state for crowdfunded project ledgers.

This package tracks a project's metadata, its funding pool, the expenses
incurred against it and per-account task contributions. Each external call
is applied as one atomic state transition over a deterministically encoded,
persistently stored state.
"""

__version__ = "0.1.0"
