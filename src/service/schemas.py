"""Request schemas of the gateway's upstream routes.

Each route declares the fields it accepts in the loose mapping form and
converts it once, at import time, with build_schema(). A mistake in a
definition therefore fails at startup rather than on the first request.
"""

from ..models.schema import build_schema

# POST /ask-ai - question about the page the user is viewing
ASK_AI_SCHEMA = build_schema({
    "question": {"type": "string", "required": True, "minLength": 1, "maxLength": 2000},
    "context": {"type": "object", "required": False},
    "url": {"type": "string", "required": False, "format": "url"},
    "selectedText": {"type": "string", "required": False, "maxLength": 5000},
})

# POST /ocr - text extraction from an image data URL
OCR_SCHEMA = build_schema({
    "image": {"type": "string", "required": True, "minLength": 1},
    "url": {"type": "string", "required": False, "format": "url"},
    "language": {"type": "string", "required": False, "pattern": r"^[a-z]{2,3}(-[A-Z]{2})?$"},
    "options": {"type": "object", "required": False},
})

# POST /pdf/extract, /pdf/ocr and /pdf/analyze - a PDF data URL
PDF_EXTRACT_SCHEMA = build_schema({
    "pdfData": {"type": "string", "required": True, "minLength": 1},
    "url": {"type": "string", "required": False, "format": "url"},
    "options": {"type": "object", "required": False},
})

# POST /ocr/batch - up to ten image data URLs in one request
OCR_BATCH_SCHEMA = build_schema({
    "images": {"type": "array", "required": True, "minItems": 1, "maxItems": 10},
    "language": {"type": "string", "required": False, "pattern": r"^[a-z]{2,3}(-[A-Z]{2})?$"},
    "options": {"type": "object", "required": False},
})
