"""
Shared constants for docmap.
"""

# Stored name of every entity's identifier
ID_KEY = "_id"

# Default key holding the class discriminator in stored documents
DEFAULT_DISCRIMINATOR_KEY = "_t"

# Cursor batch size used when streaming results into frames
DEFAULT_BATCH_SIZE = 10_000

# Positional update operators that are never translated as property names
POSITIONAL_SEGMENTS = frozenset({"$", "$[]"})

# Reference documentation for aggregation operator pages
OPERATOR_DOCS_URL = "https://www.mongodb.com/docs/manual/reference/operator/aggregation/{name}/"

# Environment variable prefix read by MapperOptions.from_env()
ENV_PREFIX = "DOCMAP_"
