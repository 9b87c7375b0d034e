"""Operator reference pages shared by the audit tests."""

import pytest

ABS_PAGE = """\
====
$abs
====

.. default-domain:: mongodb

Definition
----------

.. expression:: $abs

   Returns the absolute value of a number.

Examples
--------

A collection ``temperatureChange`` contains the following documents:

.. code-block:: javascript

   db.temperatureChange.insertMany( [
      { _id: 1, startTemp: 50, endTemp: 80 },
      { _id: 2, startTemp: 40, endTemp: 40 }
   ] )

The following example calculates the magnitude of the change:

.. code-block:: javascript

   db.temperatureChange.aggregate( [
      { $project: { delta: { $abs: { $subtract: [ "$startTemp", "$endTemp" ] } } } }
   ] )

The operation returns:

.. code-block:: javascript
   :copyable: false

   { "_id" : 1, "delta" : 30 }
   { "_id" : 2, "delta" : 0 }
"""

META_PAGE = """\
=====
$meta
=====

Definition
----------

.. expression:: $meta

   Returns the metadata associated with a document.

Examples
--------

``{ $meta: "textScore" }``
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Create an ``articles`` collection:

.. code-block:: javascript

   db.articles.insertMany([
      { "_id" : 1, "title" : "cakes and ale" },
      { "_id" : 2, "title" : "more cakes" }
   ])

.. tabs::

   .. tab:: Aggregation

      .. code-block:: javascript

         db.articles.aggregate([
            { $match: { $text: { $search: "cake" } } },
            { $project: { score: { $meta: "textScore" } } }
         ])

      The operation returns:

      .. code-block:: javascript

         { "_id" : 1, "score" : 0.75 }

   .. tab:: Find and Project

      .. code-block:: javascript

         db.articles.find(
            { $text: { $search: "cake" } },
            { score: { $meta: "textScore" } }
         )

The returned documents include the text score.
"""

BUCKET_PAGE = """\
=======
$bucket
=======

.. versionadded:: 3.4

Definition
----------

.. pipeline:: $bucket

   Categorizes incoming documents into groups.

Examples
--------

See the ``$bucketAuto`` page.
"""

OUT_PAGE = """\
====
$out
====

Definition
----------

.. pipeline:: $out

   Writes the resulting documents to a collection.
"""


@pytest.fixture
def docs_root(tmp_path):
    """Folder with four operator pages and an index page."""
    root = tmp_path / "aggregation"
    root.mkdir()
    (root / "abs.txt").write_text(ABS_PAGE, encoding="utf-8")
    (root / "meta.txt").write_text(META_PAGE, encoding="utf-8")
    (root / "bucket.txt").write_text(BUCKET_PAGE, encoding="utf-8")
    (root / "out.txt").write_text(OUT_PAGE, encoding="utf-8")
    (root / "_index.txt").write_text("Aggregation\n-----------\n", encoding="utf-8")
    return root


@pytest.fixture
def fixtures_root(tmp_path):
    """Fixture tree where $abs is implemented and $out is ignored."""
    root = tmp_path / "fixtures"
    (root / "expressions" / "abs").mkdir(parents=True)
    (root / "stages" / "out").mkdir(parents=True)
    (root / "stages" / "out" / "ignored").touch()
    return root


@pytest.fixture
def abs_page():
    """Page with a single untitled example."""
    return ABS_PAGE


@pytest.fixture
def meta_page():
    """Page with one subsection shown in two tabs."""
    return META_PAGE
