"""
Schema-driven forms.

A `SchemaForm` wraps a Formily-style JSON Schema tree (`type`, `title`,
`properties`, `x-component`, `x-decorator`, `x-validator`, `x-reactions`, ...)
and answers the questions a renderer or an API needs:

- resolve(values)   -> effective state of every field (visible, title, ...)
- validate(values)  -> list of FieldError for the visible fields
- collect(values)   -> the value tree restricted to displayed fields
- submit(values, on_submit, on_failed=None)

`void` nodes are layout containers: their children live at the parent's value
path. `object` nodes nest their children under their own name.
"""
from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from jsonschema import Draft7Validator, FormatChecker
from jsonschema.exceptions import SchemaError as JsonSchemaError

from formadmin.expressions import ExpressionError, Expression, compile_template, evaluate_template, truthy

logger = logging.getLogger(__name__)

VALUE_TYPES = {"string", "number", "integer", "boolean", "array", "object", "void"}

# Legacy definitions put the component name in `type` (e.g. {"type": "Input"}).
COMPONENT_VALUE_TYPES = {
    "NumberPicker": "number",
    "Rate": "number",
    "Slider": "number",
    "Switch": "boolean",
    "Checkbox": "array",
    "Checkbox.Group": "array",
    "Upload": "array",
    "Cascader": "array",
    "Transfer": "array",
}

DISPLAYS = ("visible", "hidden", "none")

URL_RE = re.compile(r"^(https?|ftp)://[^\s/$.?#].[^\s]*$", re.I)
PHONE_RE = re.compile(r"^\+?[\d\s\-()]{6,20}$")
INTEGER_RE = re.compile(r"^[-+]?\d+$")
NO_EDGE_WHITESPACE = r"^(?!\s)[\s\S]*(?<!\s)$"

# x-validator keys that are already JSON Schema keywords
JSON_SCHEMA_KEYWORDS = (
    "minLength", "maxLength", "minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum",
    "minItems", "maxItems", "uniqueItems", "multipleOf", "const",
)

FORMAT_CHECKER = FormatChecker()


class SchemaError(ValueError):
    """The schema tree itself is malformed."""


class FormValidationError(ValueError):
    def __init__(self, errors: List["FieldError"]):
        self.errors = errors
        super().__init__("; ".join(f"{e.path}: {e.message}" for e in errors))


@dataclass
class FieldError:
    path: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "message": self.message}


@dataclass
class FieldState:
    path: str
    title: Optional[str]
    description: Optional[str] = None
    display: str = "visible"
    required: bool = False
    disabled: bool = False
    read_only: bool = False
    value: Any = None

    @property
    def visible(self) -> bool:
        return self.display == "visible"


@dataclass
class Reaction:
    dependencies: List[str]
    when: Any = None
    fulfill: Dict[str, Any] = field(default_factory=dict)
    otherwise: Dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class FieldNode:
    name: str
    path: str
    schema: Dict[str, Any]
    parent: Optional["FieldNode"] = None
    children: List["FieldNode"] = field(default_factory=list)
    reactions: List[Reaction] = field(default_factory=list)
    required: bool = False

    @property
    def raw_type(self) -> str:
        return self.schema.get("type") or "string"

    @property
    def component(self) -> Optional[str]:
        if self.schema.get("x-component"):
            return self.schema["x-component"]
        if self.raw_type not in VALUE_TYPES:
            return self.raw_type
        return None

    @property
    def type(self) -> str:
        if self.raw_type in VALUE_TYPES:
            return self.raw_type
        return COMPONENT_VALUE_TYPES.get(self.raw_type, "string")

    @property
    def is_void(self) -> bool:
        return self.type == "void"

    @property
    def is_container(self) -> bool:
        return self.type in ("void", "object")

    @property
    def title(self) -> Optional[str]:
        return self.schema.get("title")

    @property
    def decorator(self) -> Optional[str]:
        return self.schema.get("x-decorator")

    @property
    def component_props(self) -> Dict[str, Any]:
        return self.schema.get("x-component-props") or {}

    @property
    def options(self) -> List[Dict[str, Any]]:
        return normalize_options(self.schema.get("enum"))

    @property
    def label(self) -> str:
        return self.title or self.name


def normalize_options(enum: Any) -> List[Dict[str, Any]]:
    if not isinstance(enum, list):
        return []
    options = []
    for item in enum:
        if isinstance(item, dict) and "value" in item:
            options.append({"label": item.get("label", item["value"]), "value": item["value"]})
        else:
            options.append({"label": item, "value": item})
    return options


def normalize_rules(validator: Any) -> List[Dict[str, Any]]:
    """`x-validator` may be a format name, a rule dict or a list of either."""
    if validator is None:
        return []
    items = validator if isinstance(validator, list) else [validator]
    rules = []
    for item in items:
        if isinstance(item, str):
            rules.append({"format": item})
        elif isinstance(item, dict):
            rules.append(item)
    return rules


def get_path(values: Any, path: str) -> Any:
    current = values
    for part in path.split(".") if path else []:
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
    return current


def has_path(values: Any, path: str) -> bool:
    current = values
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return False
        current = current[part]
    return True


def set_path(values: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = values
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _compile_state(state: Any, where: str) -> Dict[str, Any]:
    if not isinstance(state, dict):
        return {}
    compiled = {}
    for key, value in state.items():
        try:
            compiled[key] = compile_template(value)
        except ExpressionError as e:
            raise SchemaError(f"{where}: {e}") from e
    return compiled


# `fulfill.schema` uses schema keywords, map them to state keys
_SCHEMA_STATE_KEYS = {
    "x-visible": "visible",
    "x-hidden": "hidden",
    "x-display": "display",
    "x-disabled": "disabled",
    "x-read-only": "readOnly",
    "title": "title",
    "description": "description",
    "required": "required",
    "default": "value",
}


def _compile_reactions(raw: Any, where: str) -> List[Reaction]:
    if raw is None:
        return []
    items = raw if isinstance(raw, list) else [raw]
    reactions = []
    for item in items:
        if not isinstance(item, dict):
            # function-style reactions only exist in client code
            continue
        deps = item.get("dependencies") or []
        if isinstance(deps, (str, dict)):
            deps = [deps]
        dependencies = []
        for dep in deps:
            # {"name": "path"} form is accepted, only the path matters here
            if isinstance(dep, dict):
                dep = dep.get("source") or next(iter(dep.values()), "")
            dependencies.append(str(dep))

        def branch(block: Any) -> Dict[str, Any]:
            if not isinstance(block, dict):
                return {}
            state = _compile_state(block.get("state"), where)
            for key, value in (block.get("schema") or {}).items():
                if key in _SCHEMA_STATE_KEYS:
                    state.setdefault(_SCHEMA_STATE_KEYS[key], _compile_state({key: value}, where)[key])
            return state

        try:
            when = compile_template(item["when"]) if "when" in item else None
        except ExpressionError as e:
            raise SchemaError(f"{where}: {e}") from e
        reactions.append(Reaction(
            dependencies=dependencies,
            when=when,
            fulfill=branch(item.get("fulfill")),
            otherwise=branch(item.get("otherwise")),
        ))
    return reactions


class SchemaForm:
    """A compiled schema tree. Instances are immutable and safe to reuse."""

    def __init__(self, schema: Dict[str, Any]):
        if not isinstance(schema, dict):
            raise SchemaError("Schema must be an object")
        properties = schema.get("properties")
        if properties is not None and not isinstance(properties, dict):
            raise SchemaError("Schema 'properties' must be an object")
        self.schema = schema
        self.root = FieldNode(name="", path="", schema=schema)
        self._build_children(self.root)

    def _build_children(self, node: FieldNode) -> None:
        properties = node.schema.get("properties") or {}
        if not isinstance(properties, dict):
            raise SchemaError(f"'properties' of {node.path or 'root'} must be an object")
        required_names = node.schema.get("required")
        required_names = required_names if isinstance(required_names, list) else []

        # children of a void node are addressed from the nearest value-bearing parent
        base_path = node.path
        # sort by x-index, then declaration order
        ordered = sorted(
            enumerate(properties.items()),
            key=lambda item: (item[1][1].get("x-index", item[0]) if isinstance(item[1][1], dict) else item[0], item[0]),
        )
        for _, (name, child_schema) in ordered:
            if not isinstance(child_schema, dict):
                raise SchemaError(f"Field {name!r} must be an object")
            child_type = child_schema.get("type") or "string"
            if child_type == "void":
                path = base_path
            else:
                path = f"{base_path}.{name}" if base_path else name
            child = FieldNode(name=name, path=path, schema=child_schema, parent=node)
            child.required = child_schema.get("required") is True or name in required_names
            child.reactions = _compile_reactions(child_schema.get("x-reactions"), path or name)
            _check_rules(child_schema.get("x-validator"), path or name)
            node.children.append(child)
            if child.is_container:
                self._build_children(child)

    def walk(self, node: Optional[FieldNode] = None) -> Iterator[FieldNode]:
        """Yield every node below `node` in document order."""
        for child in (node or self.root).children:
            yield child
            if child.children:
                yield from self.walk(child)

    @property
    def fields(self) -> List[FieldNode]:
        """Value-bearing (non-void) fields, in document order."""
        return [node for node in self.walk() if not node.is_void]

    def _resolve_dependency(self, node: FieldNode, dep: str) -> str:
        if dep.startswith("."):
            parent_path = node.path.rsplit(".", 1)[0] if "." in node.path else ""
            dep = dep.lstrip(".")
            return f"{parent_path}.{dep}" if parent_path else dep
        return dep

    def _initial_state(self, node: FieldNode, values: Dict[str, Any], parent_display: str) -> FieldState:
        schema = node.schema
        display = schema.get("x-display") if schema.get("x-display") in DISPLAYS else "visible"
        if schema.get("x-visible") is False:
            display = "none"
        elif schema.get("x-hidden") is True:
            display = "hidden"
        pattern = schema.get("x-pattern")
        state = FieldState(
            path=node.path,
            title=node.title,
            description=schema.get("description"),
            display=display,
            required=node.required,
            disabled=pattern == "disabled" or schema.get("x-disabled") is True,
            read_only=pattern in ("readOnly", "readPretty") or schema.get("x-read-only") is True,
            value=None if node.is_void else get_path(values, node.path),
        )
        if parent_display == "none":
            state.display = "none"
        elif parent_display == "hidden" and state.display == "visible":
            state.display = "hidden"
        return state

    def _apply(self, state: FieldState, updates: Dict[str, Any], scope: Dict[str, Any], node: FieldNode, values: Dict[str, Any]) -> None:
        for key, template in updates.items():
            value = template.evaluate(scope) if isinstance(template, Expression) else template
            if key == "visible":
                state.display = "visible" if truthy(value) else "none"
            elif key == "hidden":
                state.display = "hidden" if truthy(value) else "visible"
            elif key == "display" and value in DISPLAYS:
                state.display = value
            elif key == "title":
                state.title = value
            elif key == "description":
                state.description = value
            elif key == "required":
                state.required = truthy(value)
            elif key == "disabled":
                state.disabled = truthy(value)
            elif key in ("readOnly", "readPretty"):
                state.read_only = truthy(value)
            elif key == "pattern":
                state.disabled = value == "disabled"
                state.read_only = value in ("readOnly", "readPretty")
            elif key == "value" and not node.is_void:
                state.value = value
                set_path(values, node.path, value)

    def _run_reactions(self, node: FieldNode, state: FieldState, values: Dict[str, Any]) -> None:
        for reaction in node.reactions:
            deps = [get_path(values, self._resolve_dependency(node, dep)) for dep in reaction.dependencies]
            scope = {
                "$deps": deps,
                "$dependencies": deps,
                "$self": {
                    "value": state.value,
                    "title": state.title,
                    "visible": state.visible,
                    "required": state.required,
                },
                "$values": values,
                "$form": {"values": values},
            }
            try:
                matched = True
                if reaction.when is not None:
                    matched = truthy(evaluate_template(reaction.when, scope))
                self._apply(state, reaction.fulfill if matched else reaction.otherwise, scope, node, values)
            except ExpressionError as e:
                logger.warning(f"Reaction on {node.path or node.name} skipped: {e}")

    def _resolve(self, values: Optional[Dict[str, Any]]):
        working = copy.deepcopy(values) if isinstance(values, dict) else {}
        states: Dict[FieldNode, FieldState] = {}

        def visit(parent: FieldNode, parent_display: str):
            for node in parent.children:
                if not node.is_void and "default" in node.schema and not has_path(working, node.path):
                    set_path(working, node.path, copy.deepcopy(node.schema["default"]))
                state = self._initial_state(node, working, parent_display)
                self._run_reactions(node, state, working)
                states[node] = state
                if node.children:
                    visit(node, state.display)

        visit(self.root, "visible")
        return states, working

    def resolve(self, values: Optional[Dict[str, Any]] = None) -> Dict[str, FieldState]:
        """Effective state per value path. Void nodes are keyed by their name."""
        states, _ = self._resolve(values)
        return {(node.path if not node.is_void else node.name): state for node, state in states.items()}

    def node_states(self, values: Optional[Dict[str, Any]] = None) -> Dict[FieldNode, FieldState]:
        """State per node in document order, used by renderers."""
        states, _ = self._resolve(values)
        return states

    def validate(self, values: Optional[Dict[str, Any]] = None) -> List[FieldError]:
        states, working = self._resolve(values)
        errors: List[FieldError] = []
        for node, state in states.items():
            if node.is_container or not state.visible:
                continue
            errors.extend(_validate_field(node, state, state.value))
        return errors

    def collect(self, values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Value tree containing only the fields that are not display:none."""
        states, working = self._resolve(values)
        collected: Dict[str, Any] = {}
        for node, state in states.items():
            if node.is_container or state.display == "none":
                continue
            if has_path(working, node.path):
                set_path(collected, node.path, get_path(working, node.path))
        return collected

    def submit(
        self,
        values: Optional[Dict[str, Any]],
        on_submit: Callable[[Dict[str, Any]], Any],
        on_failed: Optional[Callable[[List[FieldError]], Any]] = None,
    ) -> Any:
        """Validate and hand the collected values to `on_submit`.

        On failure `on_failed` receives the errors; without it a
        FormValidationError is raised.
        """
        errors = self.validate(values)
        if errors:
            if on_failed is None:
                raise FormValidationError(errors)
            on_failed(errors)
            return None
        return on_submit(self.collect(values))


@FORMAT_CHECKER.checks("url")
def _is_url(instance: Any) -> bool:
    return not isinstance(instance, str) or bool(URL_RE.match(instance))


@FORMAT_CHECKER.checks("phone")
def _is_phone(instance: Any) -> bool:
    return isinstance(instance, bool) or bool(PHONE_RE.match(str(instance)))


@FORMAT_CHECKER.checks("number")
def _is_number_text(instance: Any) -> bool:
    try:
        float(str(instance))
    except ValueError:
        return False
    return True


@FORMAT_CHECKER.checks("integer")
def _is_integer_text(instance: Any) -> bool:
    return bool(INTEGER_RE.match(str(instance)))


def to_python_pattern(pattern: str) -> str:
    """`/^[a-z]+$/i` (regex literal) becomes `(?i)^[a-z]+$`; bare patterns pass through."""
    if len(pattern) >= 2 and pattern.startswith("/") and pattern.rfind("/") > 0:
        end = pattern.rfind("/")
        flags = "".join(flag for flag in pattern[end + 1:] if flag in "ims")
        body = pattern[1:end]
        return f"(?{flags}){body}" if flags else body
    return pattern


def _json_type(node: FieldNode) -> Any:
    # option values and legacy inputs put numbers in string fields
    if node.type == "string":
        return ["string", "number"]
    return node.type


def _value_fragment(node: FieldNode) -> Dict[str, Any]:
    """JSON Schema for the field's own `type` and `enum`."""
    fragment: Dict[str, Any] = {"type": _json_type(node)}
    allowed = [option["value"] for option in node.options]
    if allowed:
        if node.type == "array":
            fragment["items"] = {"enum": allowed}
        else:
            fragment["enum"] = allowed
    return fragment


def _rule_fragment(rule: Dict[str, Any], value: Any) -> Dict[str, Any]:
    """Translate one `x-validator` rule to JSON Schema for `value`."""
    fragment = {key: rule[key] for key in JSON_SCHEMA_KEYWORDS if key in rule}

    # min / max / len are lengths for strings and lists, bounds for numbers
    if isinstance(value, str):
        lower, upper = "minLength", "maxLength"
    elif isinstance(value, list):
        lower, upper = "minItems", "maxItems"
    else:
        lower, upper = "minimum", "maximum"
    if "len" in rule:
        fragment[lower] = fragment[upper] = rule["len"]
    if "min" in rule:
        fragment.setdefault(lower, rule["min"])
    if "max" in rule:
        fragment.setdefault(upper, rule["max"])

    if isinstance(rule.get("format"), str):
        fragment["format"] = rule["format"]
    if isinstance(rule.get("pattern"), str):
        fragment["pattern"] = to_python_pattern(rule["pattern"])
    if rule.get("whitespace"):
        fragment["allOf"] = [{"pattern": NO_EDGE_WHITESPACE}]
    return fragment


def _check_rules(validator: Any, where: str) -> None:
    """Reject rules that could never be evaluated."""
    for rule in normalize_rules(validator):
        pattern = rule.get("pattern")
        if isinstance(pattern, str):
            try:
                re.compile(to_python_pattern(pattern))
            except re.error as e:
                raise SchemaError(f"{where}: invalid pattern {pattern!r}: {e}") from e
        for key in ("min", "max", "len"):
            if key in rule and (isinstance(rule[key], bool) or not isinstance(rule[key], (int, float))):
                raise SchemaError(f"{where}: validator {key!r} must be a number")
        try:
            Draft7Validator.check_schema({key: rule[key] for key in JSON_SCHEMA_KEYWORDS if key in rule})
        except JsonSchemaError as e:
            raise SchemaError(f"{where}: invalid validator rule: {e.message}") from e


def _first_error(fragment: Dict[str, Any], value: Any) -> Optional[str]:
    validator = Draft7Validator(fragment, format_checker=FORMAT_CHECKER)
    errors = sorted(validator.iter_errors(value), key=lambda err: list(err.path))
    return errors[0].message if errors else None


def _validate_field(node: FieldNode, state: FieldState, value: Any) -> List[FieldError]:
    rules = normalize_rules(node.schema.get("x-validator"))
    label = state.title or node.name

    required_rule = next((r for r in rules if r.get("required")), None)
    if is_empty(value):
        if state.required or required_rule:
            message = (required_rule or {}).get("message") or f"{label} is required"
            return [FieldError(node.path, message)]
        return []

    problem = _first_error(_value_fragment(node), value)
    if problem:
        return [FieldError(node.path, f"{label}: {problem}")]

    errors = []
    for rule in rules:
        problem = _first_error(_rule_fragment(rule, value), value)
        if problem:
            errors.append(FieldError(node.path, rule.get("message") or f"{label}: {problem}"))
    return errors
