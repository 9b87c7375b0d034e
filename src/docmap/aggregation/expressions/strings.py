"""
String expressions.
"""

from typing import Any, Optional

from docmap.aggregation.expressions.base import Expression, named_args


def _trim(operation: str, input_: Any, chars: Any) -> Expression:
    return Expression(operation, named_args(input=input_, chars=chars))


def _regex(operation: str, input_: Any, regex: Any, options: Optional[str]) -> Expression:
    return Expression(operation, named_args(input=input_, regex=regex, options=options))


def concat(*values: Any) -> Expression:
    return Expression("$concat", list(values))


def index_of_bytes(string: Any, substring: Any, start: Any = None, end: Any = None) -> Expression:
    args = [string, substring]
    if start is not None:
        args.append(start)
        if end is not None:
            args.append(end)
    return Expression("$indexOfBytes", args)


def index_of_cp(string: Any, substring: Any, start: Any = None, end: Any = None) -> Expression:
    args = [string, substring]
    if start is not None:
        args.append(start)
        if end is not None:
            args.append(end)
    return Expression("$indexOfCP", args)


def ltrim(input_: Any, chars: Any = None) -> Expression:
    return _trim("$ltrim", input_, chars)


def regex_find(input_: Any, regex: Any, options: Optional[str] = None) -> Expression:
    return _regex("$regexFind", input_, regex, options)


def regex_find_all(input_: Any, regex: Any, options: Optional[str] = None) -> Expression:
    return _regex("$regexFindAll", input_, regex, options)


def regex_match(input_: Any, regex: Any, options: Optional[str] = None) -> Expression:
    return _regex("$regexMatch", input_, regex, options)


def replace_all(input_: Any, find: Any, replacement: Any) -> Expression:
    return Expression("$replaceAll", {"input": input_, "find": find, "replacement": replacement})


def replace_one(input_: Any, find: Any, replacement: Any) -> Expression:
    return Expression("$replaceOne", {"input": input_, "find": find, "replacement": replacement})


def rtrim(input_: Any, chars: Any = None) -> Expression:
    return _trim("$rtrim", input_, chars)


def split(input_: Any, delimiter: Any) -> Expression:
    return Expression("$split", [input_, delimiter])


def str_len_bytes(value: Any) -> Expression:
    return Expression("$strLenBytes", value)


def str_len_cp(value: Any) -> Expression:
    return Expression("$strLenCP", value)


def strcasecmp(first: Any, second: Any) -> Expression:
    return Expression("$strcasecmp", [first, second])


def substr(string: Any, start: Any, length: Any) -> Expression:
    return Expression("$substr", [string, start, length])


def substr_bytes(string: Any, start: Any, length: Any) -> Expression:
    return Expression("$substrBytes", [string, start, length])


def substr_cp(string: Any, start: Any, length: Any) -> Expression:
    return Expression("$substrCP", [string, start, length])


def to_lower(value: Any) -> Expression:
    return Expression("$toLower", value)


def to_string(value: Any) -> Expression:
    return Expression("$toString", value)


def to_upper(value: Any) -> Expression:
    return Expression("$toUpper", value)


def trim(input_: Any, chars: Any = None) -> Expression:
    """Removes whitespace (or ``chars``) from both ends of a string."""
    return _trim("$trim", input_, chars)
