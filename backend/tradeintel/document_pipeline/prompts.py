"""
Prompt templates for the extraction, compliance and classification stages.

Every prompt asks for one fixed top-level JSON shape per stage so the
response parser always knows what to expect, whichever provider answers.
"""

import json
from typing import Any

from tradeintel.schemas.pipeline import DocumentType

EXTRACTION_SYSTEM_PROMPT = """You are a trade document extraction specialist. Your job is to extract structured data from commercial invoices, bills of entry, and other import/export documents.

Extract all available information accurately. If a field is not present in the document, use null. For monetary amounts, use numeric values without currency symbols. For dates, use ISO 8601 format (YYYY-MM-DD).

Respond with a single JSON object."""

COMPLIANCE_SYSTEM_PROMPT = """You are an expert in international trade compliance, customs regulations, and document validation. Provide detailed, accurate compliance analysis.

Respond with a single JSON object in the requested format."""

CLASSIFICATION_SYSTEM_PROMPT = """You are an expert in the Harmonized System (HS) of tariff nomenclature. Suggest the most relevant HS codes for product descriptions.

Respond with a single JSON object in the requested format."""

ENTITIES_SCHEMA = '[{"type": "string", "value": "string", "confidence": 0}]'

INVOICE_SCHEMA = f"""{{
  "documentType": "invoice",
  "invoiceNumber": "string",
  "invoiceDate": "YYYY-MM-DD or null",
  "dueDate": "YYYY-MM-DD or null",
  "supplier": {{"name": "string", "address": "string or null", "taxId": "string or null", "email": "string or null", "phone": "string or null"}},
  "buyer": {{"name": "string", "address": "string or null", "taxId": "string or null"}},
  "items": [{{"description": "string", "quantity": 0, "unitPrice": 0, "totalPrice": 0, "hsCode": "string or null"}}],
  "totals": {{"subtotal": 0, "tax": 0, "total": 0, "currency": "string"}},
  "entities": {ENTITIES_SCHEMA},
  "confidence": 0
}}"""

BILL_OF_ENTRY_SCHEMA = f"""{{
  "documentType": "billOfEntry",
  "boeNumber": "string",
  "boeDate": "YYYY-MM-DD or null",
  "portCode": "string or null",
  "importerDetails": {{"name": "string", "address": "string or null", "iecCode": "string or null"}},
  "shipmentDetails": {{"billOfLading": "string or null", "vessel": "string or null", "portOfLoading": "string or null", "portOfDischarge": "string or null"}},
  "items": [{{"description": "string", "hsCode": "string", "quantity": 0, "unit": "string", "unitPrice": 0, "totalValue": 0, "dutyRate": "string", "dutyAmount": 0}}],
  "totals": {{"assessableValue": 0, "totalDuty": 0, "totalValue": 0, "currency": "string"}},
  "entities": {ENTITIES_SCHEMA},
  "confidence": 0
}}"""

GENERAL_SCHEMA = f"""{{
  "documentType": "general",
  "extractedText": "string",
  "entities": {ENTITIES_SCHEMA},
  "confidence": 0
}}"""

EXTRACTION_SCHEMAS: dict[DocumentType, str] = {
    DocumentType.INVOICE: INVOICE_SCHEMA,
    DocumentType.BILL_OF_ENTRY: BILL_OF_ENTRY_SCHEMA,
    DocumentType.GENERAL: GENERAL_SCHEMA,
}

DOCUMENT_LABELS: dict[DocumentType, str] = {
    DocumentType.INVOICE: "INVOICE",
    DocumentType.BILL_OF_ENTRY: "BILL OF ENTRY (BOE)",
    DocumentType.GENERAL: "TRADE DOCUMENT",
}

# Rule checklists per document type. The synthesizer emits one check per rule,
# so these lists also fix the cardinality of synthesized compliance output.
COMPLIANCE_RULES: dict[DocumentType, list[tuple[str, str]]] = {
    DocumentType.INVOICE: [
        ("Invoice Number", "Invoice number must be present and unique"),
        ("Invoice Date", "Invoice date must be valid and not future-dated"),
        ("Party Details", "Supplier and buyer information must be complete"),
        ("Item Descriptions", "Item descriptions must be detailed and accurate"),
        ("HS Codes", "HS codes must be valid (if present)"),
        ("Arithmetic", "Prices and totals must be mathematically correct"),
        ("Currency", "Currency must be specified"),
        ("Customs Mandatory Fields", "All mandatory fields for customs clearance must be present"),
    ],
    DocumentType.BILL_OF_ENTRY: [
        ("BOE Number", "BOE number must be present and follow correct format"),
        ("BOE Date", "BOE date must be valid"),
        ("Port Code", "Port codes must be valid"),
        ("Importer IEC", "Importer IEC code must be valid format"),
        ("HS Codes", "HS codes must be accurate and complete"),
        ("Duty Calculation", "Duty calculations must be correct"),
        ("Shipment Details", "All shipment details must be complete"),
        ("Assessable Value", "Assessable value must be properly calculated"),
    ],
    DocumentType.GENERAL: [
        ("Required Information", "Document must contain required information"),
        ("Data Consistency", "Data must be consistent and accurate"),
        ("Critical Fields", "No missing critical fields"),
        ("Formatting", "Proper formatting and structure"),
    ],
}

# Checks whose failure makes a document invalid (the rest are warnings)
CRITICAL_RULES = {
    "Invoice Number", "Party Details", "Arithmetic", "Customs Mandatory Fields",
    "BOE Number", "Importer IEC", "Duty Calculation", "Assessable Value",
    "Required Information", "Critical Fields",
}

COMPLIANCE_OUTPUT_FORMAT = """{
  "isValid": true,
  "score": 0,
  "checks": [
    {"name": "string", "passed": true, "message": "string", "severity": "error|warning|info", "field": "string or null", "requirement": "string"}
  ],
  "errors": [
    {"type": "string", "field": "string", "message": "string", "severity": "error|warning", "requirement": "string"}
  ],
  "corrections": [
    {"type": "string", "field": "string", "message": "string", "suggestion": "string", "priority": "high|medium|low"}
  ],
  "summary": {"totalChecks": 0, "passedChecks": 0, "failedChecks": 0, "warningsCount": 0, "criticalIssues": 0},
  "recommendations": [
    {"category": "string", "message": "string", "priority": "high|medium|low"}
  ]
}"""

CLASSIFICATION_OUTPUT_FORMAT = """{
  "suggestions": [
    {
      "code": "string (HS code, up to 10 digits)",
      "description": "string",
      "confidence": 0,
      "category": "string",
      "dutyRate": "string",
      "restrictions": ["string"],
      "similarProducts": ["string"]
    }
  ],
  "reasoning": "string explaining the selection logic"
}"""


def build_extraction_prompt(doc_type: DocumentType) -> str:
    """Document-type specific extraction instruction."""
    schema = EXTRACTION_SCHEMAS.get(doc_type, GENERAL_SCHEMA)
    label = DOCUMENT_LABELS.get(doc_type, "TRADE DOCUMENT")
    return (
        f"Extract all text and data from this {label} document and structure it as JSON. "
        "Focus on accuracy and completeness.\n\n"
        f"Use exactly this JSON structure:\n\n{schema}\n\n"
        "Set \"confidence\" (0-100) to how confident you are in the overall extraction."
    )


def build_compliance_prompt(
    data: dict[str, Any] | str,
    doc_type: DocumentType,
    custom_rules: list[str] | None = None,
) -> str:
    """Rule checklist for the document type, plus the fixed output format."""
    if isinstance(data, str):
        payload = data
    else:
        payload = json.dumps(data, indent=2, default=str)

    rules = COMPLIANCE_RULES.get(doc_type, COMPLIANCE_RULES[DocumentType.GENERAL])
    requirement_lines = [f"{i}. {text}" for i, (_, text) in enumerate(rules, start=1)]

    sections = [
        f"Analyze the following {DOCUMENT_LABELS[doc_type].lower()} data for compliance "
        "with international trade regulations and customs requirements.",
        f"EXTRACTED DOCUMENT DATA:\n{payload}",
        f"DOCUMENT TYPE: {DOCUMENT_LABELS[doc_type]}",
        "COMPLIANCE REQUIREMENTS TO CHECK:\n" + "\n".join(requirement_lines),
    ]
    if custom_rules:
        sections.append("ADDITIONAL CUSTOM RULES:\n" + "\n".join(f"- {r}" for r in custom_rules))
    sections.append(
        "Report one check per requirement. \"score\" is 0-100.\n\n"
        f"REQUIRED OUTPUT FORMAT (JSON):\n{COMPLIANCE_OUTPUT_FORMAT}"
    )
    return "\n\n".join(sections)


def build_classification_prompt(product_description: str, additional_info: str = "") -> str:
    return (
        "Provide accurate HS code suggestions for the following product.\n\n"
        f"PRODUCT DESCRIPTION: {product_description}\n"
        f"ADDITIONAL INFO: {additional_info or 'None'}\n\n"
        "Provide the 3-5 most relevant suggestions in this JSON format:\n"
        f"{CLASSIFICATION_OUTPUT_FORMAT}"
    )
