"""
Export of results to Arrow, pandas and polars.
"""

from docmap.export.frames import ResultFrames, flatten_document, schema_for, schema_type_for

__all__ = ["ResultFrames", "flatten_document", "schema_for", "schema_type_for"]
