"""PostgreSQL <-> JSONL table mover.

Exports every table of a schema to newline-delimited JSON files and loads such
files back into a live schema (optional table creation from observed JSON
shapes, pre-load clearing, foreign-key suspension, table/column exclusion).
"""

__version__ = "0.3.0"
