"""platenest - sheet-metal part aggregation and laser-sheet nesting.

Combines per-job flat-pattern exports into per-thickness drawings and
shelf-packs the resulting plates onto stock sheets.
"""

__version__ = "0.1.0"
