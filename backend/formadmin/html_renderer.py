"""Render a SchemaForm to plain HTML controls (preview / server-side snapshot)."""
from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union

from bs4 import BeautifulSoup

from formadmin.schema_form import FieldNode, FieldState, SchemaForm

INPUT_TYPES = {
    "Input": "text",
    "Password": "password",
    "Input.Password": "password",
    "NumberPicker": "number",
    "DatePicker": "date",
    "DatePicker.RangePicker": "date",
    "TimePicker": "time",
    "Upload": "file",
    "Upload.Dragger": "file",
}

TEXTAREA_COMPONENTS = {"Input.TextArea", "TextArea"}
SELECT_COMPONENTS = {"Select", "Cascader", "TreeSelect", "Transfer"}
RADIO_COMPONENTS = {"Radio", "Radio.Group"}
CHECKBOX_COMPONENTS = {"Checkbox", "Checkbox.Group"}
RANGE_COMPONENTS = {"Rate", "Slider"}


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _field_id(node: FieldNode) -> str:
    return "field-" + node.path.replace(".", "-")


class HtmlRenderer:
    def __init__(self, form: SchemaForm, values: Optional[Dict[str, Any]] = None,
                 submit_text: str = "Submit", reset_text: str = "Reset"):
        self.form = form
        self.values = values or {}
        self.submit_text = submit_text
        self.reset_text = reset_text
        self.soup = BeautifulSoup("", "html.parser")
        self.states: Dict[FieldNode, FieldState] = {}

    def render(self) -> str:
        self.states = self.form.node_states(self.values)
        form_tag = self.soup.new_tag("form", attrs={"class": "schema-form", "method": "post"})
        self.soup.append(form_tag)
        for child in self.form.root.children:
            self._render_node(child, form_tag)

        buttons = self.soup.new_tag("div", attrs={"class": "form-button-group"})
        submit = self.soup.new_tag("button", attrs={"type": "submit"})
        submit.string = self.submit_text
        reset = self.soup.new_tag("button", attrs={"type": "reset"})
        reset.string = self.reset_text
        buttons.append(submit)
        buttons.append(reset)
        form_tag.append(buttons)
        return str(self.soup)

    def _render_node(self, node: FieldNode, parent) -> None:
        state = self.states[node]
        # hidden fields keep their value but are not shown
        if state.display == "none":
            return
        if state.display == "hidden":
            if not node.is_container:
                parent.append(self.soup.new_tag("input", attrs={
                    "type": "hidden", "name": node.path, "value": _text(state.value)}))
            return

        if node.is_container:
            self._render_container(node, state, parent)
            return

        control = self._control(node, state)
        if node.decorator != "FormItem":
            parent.append(control)
            return

        item = self.soup.new_tag("div", attrs={"class": "form-item"})
        label = self.soup.new_tag("label", attrs={"for": _field_id(node)})
        label.string = _text(state.title or node.name)
        if state.required:
            label["class"] = "required"
        item.append(label)
        item.append(control)
        if state.description:
            help_tag = self.soup.new_tag("p", attrs={"class": "form-item-help"})
            help_tag.string = _text(state.description)
            item.append(help_tag)
        parent.append(item)

    def _render_container(self, node: FieldNode, state: FieldState, parent) -> None:
        component = node.component or ""
        css = component.replace(".", "-").lower() or node.type
        if state.title:
            container = self.soup.new_tag("fieldset", attrs={"class": css})
            legend = self.soup.new_tag("legend")
            legend.string = _text(state.title)
            container.append(legend)
        else:
            container = self.soup.new_tag("div", attrs={"class": css})
        columns = node.component_props.get("maxColumns")
        if isinstance(columns, int):
            container["data-columns"] = str(columns)
        for child in node.children:
            self._render_node(child, container)
        parent.append(container)

    def _common_attrs(self, node: FieldNode, state: FieldState) -> Dict[str, str]:
        attrs = {"id": _field_id(node), "name": node.path}
        if state.required:
            attrs["required"] = ""
        if state.disabled:
            attrs["disabled"] = ""
        if state.read_only:
            attrs["readonly"] = ""
        placeholder = node.component_props.get("placeholder")
        if placeholder:
            attrs["placeholder"] = _text(placeholder)
        return attrs

    def _control(self, node: FieldNode, state: FieldState):
        component = node.component or self._default_component(node)
        value = state.value if state.value is not None else node.schema.get("default")
        attrs = self._common_attrs(node, state)

        if component in TEXTAREA_COMPONENTS:
            rows = node.component_props.get("rows")
            if rows:
                attrs["rows"] = _text(rows)
            tag = self.soup.new_tag("textarea", attrs=attrs)
            tag.string = _text(value)
            return tag

        if component in SELECT_COMPONENTS:
            if node.type == "array" or node.component_props.get("mode") in ("multiple", "tags"):
                attrs["multiple"] = ""
            tag = self.soup.new_tag("select", attrs=attrs)
            selected = value if isinstance(value, list) else [value]
            for option in node.options:
                option_tag = self.soup.new_tag("option", attrs={"value": _text(option["value"])})
                option_tag.string = _text(option["label"])
                if option["value"] in selected:
                    option_tag["selected"] = ""
                tag.append(option_tag)
            return tag

        if component in RADIO_COMPONENTS or (component in CHECKBOX_COMPONENTS and node.options):
            input_type = "radio" if component in RADIO_COMPONENTS else "checkbox"
            group = self.soup.new_tag("div", attrs={"class": f"{input_type}-group", "id": attrs["id"]})
            selected = value if isinstance(value, list) else [value]
            for index, option in enumerate(node.options):
                option_id = f"{attrs['id']}-{index}"
                option_attrs = {"type": input_type, "id": option_id, "name": node.path,
                                "value": _text(option["value"])}
                if option["value"] in selected:
                    option_attrs["checked"] = ""
                if state.disabled:
                    option_attrs["disabled"] = ""
                label = self.soup.new_tag("label", attrs={"for": option_id})
                label.append(self.soup.new_tag("input", attrs=option_attrs))
                label.append(_text(option["label"]))
                group.append(label)
            return group

        if component in CHECKBOX_COMPONENTS or component == "Switch":
            attrs["type"] = "checkbox"
            attrs["value"] = "true"
            if component == "Switch":
                attrs["role"] = "switch"
            if value is True:
                attrs["checked"] = ""
            return self.soup.new_tag("input", attrs=attrs)

        if component in RANGE_COMPONENTS:
            props = node.component_props
            attrs["type"] = "range"
            attrs["min"] = _text(props.get("min", 0))
            attrs["max"] = _text(props.get("max", props.get("count", 5) if component == "Rate" else 100))
            if props.get("allowHalf"):
                attrs["step"] = "0.5"
            if value is not None:
                attrs["value"] = _text(value)
            return self.soup.new_tag("input", attrs=attrs)

        attrs["type"] = INPUT_TYPES.get(component, "text")
        if value is not None and attrs["type"] != "file":
            attrs["value"] = _text(value)
        return self.soup.new_tag("input", attrs=attrs)

    @staticmethod
    def _default_component(node: FieldNode) -> str:
        if node.options:
            return "Checkbox.Group" if node.type == "array" else "Select"
        if node.type in ("number", "integer"):
            return "NumberPicker"
        if node.type == "boolean":
            return "Switch"
        return "Input"


def render_html(schema: Union[SchemaForm, Dict[str, Any]], values: Optional[Dict[str, Any]] = None,
                submit_text: str = "Submit", reset_text: str = "Reset") -> str:
    form = schema if isinstance(schema, SchemaForm) else SchemaForm(schema)
    return HtmlRenderer(form, values, submit_text=submit_text, reset_text=reset_text).render()
