"""
Documentation audit: scrapes the aggregation operator reference pages and
generates test fixtures from their examples.
"""

from docmap.audits.auditor import AuditReport, RstAuditor
from docmap.audits.example import CodeBlock, OperatorExample
from docmap.audits.operator import Operator, OperatorType
from docmap.audits.rst import DedupeMap, RstDocument, Separator

__all__ = [
    "AuditReport",
    "CodeBlock",
    "DedupeMap",
    "Operator",
    "OperatorExample",
    "OperatorType",
    "RstAuditor",
    "RstDocument",
    "Separator",
]
