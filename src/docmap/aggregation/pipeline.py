"""
Aggregations over a mapped collection.

    results = (
        datastore.aggregate(Order)
        .pipeline(
            match(eq("status", "A")),
            group(id_("$cust_id")).field("total", sum_("$amount")),
            sort(Sort.descending("total")),
        )
        .execute(CustomerTotal)
    )

The source is a mapped class (its collection is used and attribute paths are
translated) or a plain collection name. A pipeline starting with
``$documents`` runs against the database instead of a collection.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from docmap.aggregation.stages import Stage
from docmap.export.frames import ResultFrames
from docmap.query.query import MappedCursor

logger = logging.getLogger(__name__)


@dataclass
class AggregationOptions:
    allow_disk_use: Optional[bool] = None
    batch_size: Optional[int] = None
    collation: Optional[Dict[str, Any]] = None
    comment: Optional[str] = None
    hint: Any = None
    let: Optional[Dict[str, Any]] = None
    max_time_ms: Optional[int] = None

    def __post_init__(self):
        if self.batch_size is not None and self.batch_size < 0:
            raise ValueError("batch_size must be >= 0")

    def to_kwargs(self) -> dict:
        kwargs: Dict[str, Any] = {}
        if self.allow_disk_use is not None:
            kwargs["allowDiskUse"] = self.allow_disk_use
        if self.batch_size is not None:
            kwargs["batchSize"] = self.batch_size
        if self.collation is not None:
            kwargs["collation"] = self.collation
        if self.comment is not None:
            kwargs["comment"] = self.comment
        if self.hint is not None:
            kwargs["hint"] = self.hint
        if self.let is not None:
            kwargs["let"] = self.let
        if self.max_time_ms is not None:
            kwargs["maxTimeMS"] = self.max_time_ms
        return kwargs


class Aggregation:
    """
    A pipeline of stages bound to a source.

    Args:
        datastore: datastore providing the mapper and driver handles
        source: mapped class or collection name
    """

    def __init__(self, datastore, source: Union[type, str]):
        self.datastore = datastore
        self.mapper = datastore.get_mapper()
        self.source = source
        self.stages: List[Stage] = []

    @property
    def source_type(self) -> Optional[type]:
        return self.source if isinstance(self.source, type) else None

    def pipeline(self, *stages: Stage) -> "Aggregation":
        self.stages.extend(stages)
        return self

    def to_pipeline(self) -> List[Dict[str, Any]]:
        return [stage.encode(self.mapper, self.source_type) for stage in self.stages]

    def _target(self, pipeline: List[Dict[str, Any]]):
        if pipeline and "$documents" in pipeline[0]:
            return self.datastore.get_database()
        if isinstance(self.source, str):
            return self.datastore.get_database()[self.source]
        return self.datastore.get_collection(self.source)

    def _run(self, options: Optional[AggregationOptions]):
        pipeline = self.to_pipeline()
        kwargs = (options or AggregationOptions()).to_kwargs()
        session = getattr(self.datastore, "session", None)
        if session is not None:
            kwargs["session"] = session
        logger.debug("aggregate %s %s", self.source, pipeline)
        return self._target(pipeline).aggregate(pipeline, **kwargs)

    def execute(
        self,
        result_type: Optional[type] = None,
        options: Optional[AggregationOptions] = None,
    ) -> MappedCursor:
        """
        Run the pipeline.

        Results decode into ``result_type`` when it is a mapped class, and are
        returned as raw documents otherwise.
        """
        if result_type is not None and not self.mapper.is_mappable(result_type):
            result_type = None
        return MappedCursor(self._run(options), self.mapper, result_type)

    def to_dataframe(
        self,
        result_type: Optional[type] = None,
        options: Optional[AggregationOptions] = None,
    ) -> pd.DataFrame:
        return ResultFrames(self._run(options), self.mapper, result_type).to_pandas()

    def __repr__(self) -> str:
        return f"Aggregation({self.source!r}, {len(self.stages)} stages)"
