from __future__ import annotations

import copy
from typing import Any

PALETTE: list[dict[str, Any]] = [
    {"type": "heading", "label": "Heading", "presentation": {"font_size": "24px", "text_align": "left"}},
    {"type": "paragraph", "label": "Paragraph", "presentation": {"font_size": "16px", "text_align": "left"}},
    {"type": "text", "label": "Text Input"},
    {"type": "number", "label": "Number Input"},
    {"type": "email", "label": "Email Input"},
    {"type": "phone", "label": "Phone Number"},
    {"type": "textarea", "label": "Text Area"},
    {"type": "select", "label": "Dropdown", "options": ["Option 1", "Option 2", "Option 3"]},
    {"type": "radio", "label": "Multiple Choice", "options": ["Option 1", "Option 2", "Option 3"]},
    {"type": "checkbox", "label": "Checkboxes", "options": ["Option 1", "Option 2", "Option 3"]},
    {"type": "date", "label": "Date"},
    {"type": "time", "label": "Time"},
    {"type": "file", "label": "File Upload"},
    {"type": "rating", "label": "Rating", "options": ["1", "2", "3", "4", "5"]},
    {"type": "image", "label": "Image", "presentation": {"image_url": "", "width": "100%"}},
    {"type": "divider", "label": "Divider"},
]

FORM_TEMPLATES: list[dict[str, Any]] = [
    {
        "id": "contact",
        "name": "Contact Form",
        "description": "Collect names, emails and messages from visitors.",
        "elements": [
            {"type": "text", "label": "Name", "required": True},
            {"type": "email", "label": "Email", "required": True},
            {"type": "phone", "label": "Phone"},
            {"type": "textarea", "label": "Message", "required": True},
        ],
    },
    {
        "id": "feedback",
        "name": "Customer Feedback",
        "description": "Ask customers how satisfied they are with your product.",
        "elements": [
            {"type": "heading", "label": "Tell us about your experience"},
            {"type": "rating", "label": "Overall satisfaction", "required": True, "options": ["1", "2", "3", "4", "5"]},
            {
                "type": "radio",
                "label": "Would you recommend us?",
                "options": ["Yes", "Maybe", "No"],
            },
            {"type": "textarea", "label": "What could we improve?"},
        ],
    },
    {
        "id": "event",
        "name": "Event Registration",
        "description": "Register attendees for an upcoming event.",
        "elements": [
            {"type": "text", "label": "Full name", "required": True},
            {"type": "email", "label": "Email", "required": True},
            {"type": "select", "label": "Ticket type", "required": True, "options": ["General", "VIP", "Student"]},
            {
                "type": "checkbox",
                "label": "Sessions",
                "options": ["Morning keynote", "Workshops", "Networking"],
                "presentation": {"columns": 2},
            },
            {"type": "date", "label": "Arrival date"},
        ],
    },
]


def palette_definition(element_type: str) -> dict[str, Any] | None:
    for definition in PALETTE:
        if definition["type"] == element_type:
            return copy.deepcopy(definition)
    return None


def get_template(template_id: str) -> dict[str, Any] | None:
    for template in FORM_TEMPLATES:
        if template["id"] == template_id:
            return copy.deepcopy(template)
    return None
