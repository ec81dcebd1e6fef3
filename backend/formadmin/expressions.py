"""
Evaluator for the `{{ ... }}` expressions found in `x-reactions` blocks.

Only the small JavaScript-flavoured subset that schema authors actually write
is supported, e.g.:

    {{$deps[0] === "enterprise"}}
    {{$deps[0] === "enterprise" ? "Company name" : "Full name"}}
    {{$deps[0] > 18 && !$deps[1]}}
    {{$self.value.length >= 6}}

Expressions are compiled once into a tree of closures and evaluated against a
scope dict holding `$deps`, `$self`, `$values` and `$form`.
"""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Tuple

Scope = Dict[str, Any]
Evaluator = Callable[[Scope], Any]

_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
    |(?P<number>\d+\.\d+|\d+|\.\d+)
    |(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    |(?P<name>\$?[A-Za-z_][A-Za-z0-9_]*)
    |(?P<op>===|!==|==|!=|<=|>=|&&|\|\||[-+*/%<>!?:.()\[\],])
    """,
    re.VERBOSE,
)

_KEYWORDS = {"true": True, "false": False, "null": None, "undefined": None}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"'}


class ExpressionError(ValueError):
    """Raised for expressions that cannot be parsed or evaluated."""


def is_expression(value: Any) -> bool:
    return isinstance(value, str) and value.strip().startswith("{{") and value.strip().endswith("}}")


def _tokenize(source: str) -> List[Tuple[str, str]]:
    tokens = []
    pos = 0
    while pos < len(source):
        match = _TOKEN_RE.match(source, pos)
        if not match:
            raise ExpressionError(f"Unexpected character {source[pos]!r} at {pos} in {source!r}")
        pos = match.end()
        kind = match.lastgroup
        if kind == "space":
            continue
        tokens.append((kind, match.group(kind)))
    return tokens


def _unquote(literal: str) -> str:
    body = literal[1:-1]
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            out.append(_ESCAPES.get(body[i + 1], body[i + 1]))
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


# JavaScript-ish value semantics

def truthy(value: Any) -> bool:
    if isinstance(value, (list, dict)):
        return True
    return bool(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    if _is_number(value):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        try:
            return float(value.strip()) if value.strip() else 0
        except ValueError:
            return None
    return None


def _to_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def strict_equals(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if strict_equals(left, right):
        return True
    if isinstance(left, (list, dict)) or isinstance(right, (list, dict)):
        return False
    ln, rn = _to_number(left), _to_number(right)
    return ln is not None and rn is not None and ln == rn


def _compare(op: str, left: Any, right: Any) -> bool:
    if isinstance(left, str) and isinstance(right, str):
        pair = (left, right)
    else:
        ln, rn = _to_number(left), _to_number(right)
        if ln is None or rn is None:
            return False
        pair = (ln, rn)
    if op == "<":
        return pair[0] < pair[1]
    if op == "<=":
        return pair[0] <= pair[1]
    if op == ">":
        return pair[0] > pair[1]
    return pair[0] >= pair[1]


def _arithmetic(op: str, left: Any, right: Any) -> Any:
    if op == "+" and (isinstance(left, str) or isinstance(right, str)):
        return _to_text(left) + _to_text(right)
    ln, rn = _to_number(left), _to_number(right)
    if ln is None or rn is None:
        raise ExpressionError(f"Cannot apply {op!r} to {left!r} and {right!r}")
    if op == "+":
        return ln + rn
    if op == "-":
        return ln - rn
    if op == "*":
        return ln * rn
    if rn == 0:
        raise ExpressionError("Division by zero")
    if op == "/":
        return ln / rn
    return ln % rn


def get_member(target: Any, key: Any) -> Any:
    if key == "length" and isinstance(target, (str, list)):
        return len(target)
    if isinstance(target, dict):
        return target.get(key if isinstance(key, str) else _to_text(key))
    if isinstance(target, (list, str)):
        number = _to_number(key)
        if number is None or not float(number).is_integer():
            return None
        index = int(number)
        return target[index] if 0 <= index < len(target) else None
    return None


class _Parser:
    """Recursive descent parser; each rule returns an evaluator closure."""

    def __init__(self, source: str):
        self.source = source
        self.tokens = _tokenize(source)
        self.pos = 0

    def peek(self) -> Optional[Tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def accept(self, *ops: str) -> Optional[str]:
        token = self.peek()
        if token and token[0] == "op" and token[1] in ops:
            self.pos += 1
            return token[1]
        return None

    def expect(self, op: str) -> None:
        if not self.accept(op):
            raise ExpressionError(f"Expected {op!r} in {self.source!r}")

    def parse(self) -> Evaluator:
        if not self.tokens:
            raise ExpressionError("Empty expression")
        node = self.ternary()
        if self.peek() is not None:
            raise ExpressionError(f"Unexpected token {self.peek()[1]!r} in {self.source!r}")
        return node

    def ternary(self) -> Evaluator:
        condition = self.logical_or()
        if not self.accept("?"):
            return condition
        when_true = self.ternary()
        self.expect(":")
        when_false = self.ternary()
        return lambda s: when_true(s) if truthy(condition(s)) else when_false(s)

    def logical_or(self) -> Evaluator:
        node = self.logical_and()
        while self.accept("||"):
            left, right = node, self.logical_and()
            node = lambda s, l=left, r=right: (lambda v: v if truthy(v) else r(s))(l(s))
        return node

    def logical_and(self) -> Evaluator:
        node = self.equality()
        while self.accept("&&"):
            left, right = node, self.equality()
            node = lambda s, l=left, r=right: (lambda v: r(s) if truthy(v) else v)(l(s))
        return node

    def equality(self) -> Evaluator:
        node = self.relational()
        while True:
            op = self.accept("===", "!==", "==", "!=")
            if not op:
                return node
            left, right = node, self.relational()
            if op == "===":
                node = lambda s, l=left, r=right: strict_equals(l(s), r(s))
            elif op == "!==":
                node = lambda s, l=left, r=right: not strict_equals(l(s), r(s))
            elif op == "==":
                node = lambda s, l=left, r=right: loose_equals(l(s), r(s))
            else:
                node = lambda s, l=left, r=right: not loose_equals(l(s), r(s))

    def relational(self) -> Evaluator:
        node = self.additive()
        while True:
            op = self.accept("<=", ">=", "<", ">")
            if not op:
                return node
            left, right = node, self.additive()
            node = lambda s, o=op, l=left, r=right: _compare(o, l(s), r(s))

    def additive(self) -> Evaluator:
        node = self.multiplicative()
        while True:
            op = self.accept("+", "-")
            if not op:
                return node
            left, right = node, self.multiplicative()
            node = lambda s, o=op, l=left, r=right: _arithmetic(o, l(s), r(s))

    def multiplicative(self) -> Evaluator:
        node = self.unary()
        while True:
            op = self.accept("*", "/", "%")
            if not op:
                return node
            left, right = node, self.unary()
            node = lambda s, o=op, l=left, r=right: _arithmetic(o, l(s), r(s))

    def unary(self) -> Evaluator:
        if self.accept("!"):
            operand = self.unary()
            return lambda s: not truthy(operand(s))
        if self.accept("-"):
            operand = self.unary()
            return lambda s: _arithmetic("-", 0, operand(s))
        return self.postfix()

    def postfix(self) -> Evaluator:
        node = self.primary()
        while True:
            if self.accept("."):
                token = self.peek()
                if not token or token[0] != "name":
                    raise ExpressionError(f"Expected property name in {self.source!r}")
                self.pos += 1
                node = lambda s, t=node, k=token[1]: get_member(t(s), k)
            elif self.accept("["):
                key = self.ternary()
                self.expect("]")
                node = lambda s, t=node, k=key: get_member(t(s), k(s))
            else:
                return node

    def primary(self) -> Evaluator:
        token = self.peek()
        if token is None:
            raise ExpressionError(f"Unexpected end of expression {self.source!r}")
        kind, text = token
        self.pos += 1
        if kind == "number":
            value = float(text) if "." in text else int(text)
            return lambda s: value
        if kind == "string":
            value = _unquote(text)
            return lambda s: value
        if kind == "name":
            if text in _KEYWORDS:
                value = _KEYWORDS[text]
                return lambda s: value
            if not text.startswith("$"):
                raise ExpressionError(f"Unknown identifier {text!r} in {self.source!r}")
            return lambda s: s.get(text)
        if text == "(":
            node = self.ternary()
            self.expect(")")
            return node
        if text == "[":
            items = []
            if not self.accept("]"):
                items.append(self.ternary())
                while self.accept(","):
                    items.append(self.ternary())
                self.expect("]")
            return lambda s: [item(s) for item in items]
        raise ExpressionError(f"Unexpected token {text!r} in {self.source!r}")


class Expression:
    def __init__(self, source: str):
        self.source = source
        self._evaluate = _Parser(source).parse()

    def evaluate(self, scope: Scope) -> Any:
        try:
            return self._evaluate(scope)
        except ExpressionError:
            raise
        except (TypeError, ValueError, OverflowError) as e:
            raise ExpressionError(f"Failed to evaluate {self.source!r}: {e}") from e

    def __repr__(self):
        return f"Expression({self.source!r})"


@lru_cache(maxsize=512)
def compile_expression(source: str) -> Expression:
    """Compile the body of an expression (without the surrounding braces)."""
    return Expression(source.strip())


def compile_template(value: Any) -> Any:
    """Return an Expression for `{{...}}` strings and the value itself otherwise."""
    if is_expression(value):
        return compile_expression(value.strip()[2:-2].strip())
    return value


def evaluate_template(value: Any, scope: Scope) -> Any:
    compiled = compile_template(value) if isinstance(value, str) else value
    if isinstance(compiled, Expression):
        return compiled.evaluate(scope)
    return compiled
