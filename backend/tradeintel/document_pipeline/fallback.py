"""
FallbackSynthesizer: offline substitute output for every pipeline stage.

Used whenever no provider is usable, or a provider answer is unusable. Output
has the same shape and stable cardinalities as real provider output, but:
- is always tagged ``is_synthesized=True`` with provider id "fallback"
- never claims more confidence than ``SYNTHESIZED_CEILING``
- is generated without any external call, from a seedable ``random.Random``
"""

import logging
import random
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from tradeintel.document_pipeline.prompts import COMPLIANCE_RULES, CRITICAL_RULES
from tradeintel.schemas.pipeline import (
    FALLBACK_PROVIDER,
    CodeSuggestion,
    ComplianceCheck,
    ComplianceResult,
    ComplianceSummary,
    DocumentType,
    Entity,
    ExtractionResult,
    FallbackReason,
    Severity,
)

logger = logging.getLogger("tradeintel.fallback")

# Real-provider output is accepted above this; synthesized output never exceeds it.
SYNTHESIZED_CEILING = 75
EXTRACTION_CONFIDENCE_RANGE = (50, 70)
ENTITY_CONFIDENCE_RANGE = (55, 70)
COMPLIANCE_SCORE_RANGE = (40, 70)
VALID_SCORE_FLOOR = 55
CLASSIFICATION_CONFIDENCE_RANGE = (40, 65)
CHECK_PASS_PROBABILITY = 0.8

# ── Reference data ──

SUPPLIERS = [
    ("ABC Exports Ltd", "123 Export Street, Mumbai, India"),
    ("Shenzhen Bright Electronics Co.", "88 Keji Road, Shenzhen, China"),
    ("Rhine Machinery GmbH", "Industriestrasse 14, Duisburg, Germany"),
    ("Anatolia Textiles A.S.", "Organize Sanayi 5, Bursa, Turkey"),
]

BUYERS = [
    ("XYZ Imports Inc", "456 Import Avenue, Newark, USA"),
    ("Coastal Trading Pvt Ltd", "21 Harbour Road, Chennai, India"),
    ("Nordic Wholesale AB", "Hamngatan 3, Gothenburg, Sweden"),
]

PRODUCTS = [
    ("Electronic Components", "8542.31.00"),
    ("Cotton Textiles", "5208.52.00"),
    ("Machinery Parts", "8483.40.90"),
    ("Stainless Steel Fasteners", "7318.15.00"),
    ("Plastic Housings", "3926.90.99"),
    ("LED Lighting Modules", "9405.42.00"),
]

PORTS = [
    ("INNSA1", "Nhava Sheva"),
    ("INMAA1", "Chennai"),
    ("INMUN1", "Mundra"),
    ("INCCU1", "Kolkata"),
]

VESSELS = ["MSC AURORA", "MAERSK ELBA", "CMA CGM TAGE", "EVER GIVEN"]

CURRENCIES = ["USD", "EUR", "INR"]

# (code, description, category, duty rate, restrictions, similar products, keywords)
HS_CATALOGUE = [
    ("8471.30.01", "Portable automatic data processing machines, weighing not more than 10 kg",
     "Electronics", "0%", ["Import license may be required"], ["Laptops", "Tablets", "Portable computers"],
     ("electronic", "computer", "digital", "laptop", "tablet")),
    ("8542.31.00", "Electronic integrated circuits: processors and controllers",
     "Electronics", "0%", [], ["Microcontrollers", "CPUs", "Chips"],
     ("chip", "circuit", "semiconductor", "processor")),
    ("6204.62.10", "Women's or girls' trousers, of cotton",
     "Textiles", "12%", ["Textile quota restrictions may apply"], ["Pants", "Jeans", "Cotton trousers"],
     ("textile", "clothing", "fabric", "cotton", "garment", "apparel")),
    ("8483.40.90", "Gears and gearing, other than toothed wheels",
     "Machinery", "7.5%", ["Quality certification required"], ["Mechanical gears", "Transmission parts"],
     ("machine", "gear", "mechanical", "machinery", "bearing")),
    ("0401.20.00", "Milk and cream, not concentrated, fat content 1-6%",
     "Dairy", "30%", ["FSSAI clearance required"], ["Milk", "Cream"],
     ("milk", "dairy", "cream")),
    ("0910.30.00", "Turmeric (curcuma)",
     "Spices", "30%", ["Phytosanitary certificate required"], ["Turmeric powder", "Curcuma"],
     ("turmeric", "spice", "curcuma")),
    ("7318.15.00", "Threaded screws and bolts of iron or steel",
     "Metals", "10%", [], ["Bolts", "Screws", "Fasteners"],
     ("steel", "bolt", "screw", "fastener", "iron")),
    ("3926.90.99", "Other articles of plastics",
     "Plastics", "15%", [], ["Plastic housings", "Plastic fittings"],
     ("plastic", "polymer", "housing")),
]

GENERIC_SUGGESTION_COUNT = 2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FallbackSynthesizer:
    """Deterministic-shape, randomized-content substitute for provider output."""

    def __init__(
        self,
        seed: int | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.rng = rng or random.Random(seed)
        self.clock = clock or _utcnow

    # --- Extraction ---

    def synthesize_extraction(
        self,
        doc_type: DocumentType,
        reason: FallbackReason = FallbackReason.EXHAUSTED,
        filename: str | None = None,
    ) -> ExtractionResult:
        """Substitute OCR output for a document of ``doc_type``."""
        logger.info("Synthesizing extraction for %s (%s)", doc_type.value, reason.value)

        if doc_type == DocumentType.INVOICE:
            structured, raw_text, entities = self._invoice()
        elif doc_type == DocumentType.BILL_OF_ENTRY:
            structured, raw_text, entities = self._bill_of_entry()
        else:
            structured, raw_text, entities = self._general(filename)

        note = self._note(reason)
        structured["synthesized"] = True
        return ExtractionResult(
            success=True,
            document_type=doc_type,
            raw_text=f"{raw_text}\n\nNote: {note}",
            structured_data=structured,
            entities=entities,
            confidence=self.rng.randint(*EXTRACTION_CONFIDENCE_RANGE),
            provider_id=FALLBACK_PROVIDER,
            is_synthesized=True,
            fallback_reason=reason,
            metadata={"note": note, "filename": filename},
        )

    def _entity(self, entity_type: str, value: str) -> Entity:
        return Entity(type=entity_type, value=value, confidence=self.rng.randint(*ENTITY_CONFIDENCE_RANGE))

    def _invoice(self) -> tuple[dict, str, list[Entity]]:
        today = self.clock().date()
        invoice_number = f"INV-{today.year}-{self.rng.randint(1, 9999):04d}"
        supplier_name, supplier_address = self.rng.choice(SUPPLIERS)
        buyer_name, buyer_address = self.rng.choice(BUYERS)
        currency = self.rng.choice(CURRENCIES)

        items = []
        for description, hs_code in self.rng.sample(PRODUCTS, 3):
            quantity = self.rng.randint(1, 50)
            unit_price = round(self.rng.uniform(25, 2000), 2)
            items.append({
                "description": description,
                "quantity": quantity,
                "unitPrice": unit_price,
                "totalPrice": round(quantity * unit_price, 2),
                "hsCode": hs_code,
            })
        subtotal = round(sum(i["totalPrice"] for i in items), 2)
        tax = round(subtotal * self.rng.choice([0.0, 0.05, 0.12, 0.18]), 2)
        total = round(subtotal + tax, 2)

        structured = {
            "documentType": DocumentType.INVOICE.value,
            "invoiceNumber": invoice_number,
            "invoiceDate": today.isoformat(),
            "dueDate": (today + timedelta(days=30)).isoformat(),
            "supplier": {"name": supplier_name, "address": supplier_address},
            "buyer": {"name": buyer_name, "address": buyer_address},
            "items": items,
            "totals": {"subtotal": subtotal, "tax": tax, "total": total, "currency": currency},
        }
        raw_text = (
            "COMMERCIAL INVOICE\n\n"
            f"Invoice Number: {invoice_number}\nDate: {today.isoformat()}\n"
            f"From: {supplier_name}\nTo: {buyer_name}\n"
            f"Amount: {currency} {total:,.2f}\n"
            f"Items: {', '.join(i['description'] for i in items)}"
        )
        entities = [
            self._entity("invoice_number", invoice_number),
            self._entity("company", supplier_name),
            self._entity("amount", f"{total:.2f}"),
            self._entity("date", today.isoformat()),
            self._entity("currency", currency),
        ]
        return structured, raw_text, entities

    def _bill_of_entry(self) -> tuple[dict, str, list[Entity]]:
        today = self.clock().date()
        boe_number = f"BOE-{today.year}-{self.rng.randint(1, 99999):05d}"
        port_code, port_name = self.rng.choice(PORTS)
        importer_name, importer_address = self.rng.choice(BUYERS)
        iec_code = f"{self.rng.randint(0, 9_999_999_999):010d}"

        items = []
        for description, hs_code in self.rng.sample(PRODUCTS, 2):
            quantity = self.rng.randint(10, 500)
            unit_price = round(self.rng.uniform(5, 500), 2)
            value = round(quantity * unit_price, 2)
            duty_rate = self.rng.choice([5.0, 7.5, 10.0, 15.0])
            items.append({
                "description": description,
                "hsCode": hs_code,
                "quantity": quantity,
                "unit": "PCS",
                "unitPrice": unit_price,
                "totalValue": value,
                "dutyRate": f"{duty_rate}%",
                "dutyAmount": round(value * duty_rate / 100, 2),
            })
        assessable = round(sum(i["totalValue"] for i in items), 2)
        total_duty = round(sum(i["dutyAmount"] for i in items), 2)

        structured = {
            "documentType": DocumentType.BILL_OF_ENTRY.value,
            "boeNumber": boe_number,
            "boeDate": today.isoformat(),
            "portCode": port_code,
            "importerDetails": {"name": importer_name, "address": importer_address, "iecCode": iec_code},
            "shipmentDetails": {
                "billOfLading": f"BL{self.rng.randint(100000, 999999)}",
                "vessel": self.rng.choice(VESSELS),
                "portOfLoading": "CNSHA",
                "portOfDischarge": port_code,
            },
            "items": items,
            "totals": {
                "assessableValue": assessable,
                "totalDuty": total_duty,
                "totalValue": round(assessable + total_duty, 2),
                "currency": "INR",
            },
        }
        raw_text = (
            "BILL OF ENTRY\n\n"
            f"BOE Number: {boe_number}\nDate: {today.isoformat()}\n"
            f"Port: {port_code} ({port_name})\nImporter: {importer_name}\n"
            f"IEC Code: {iec_code}\nAssessable Value: INR {assessable:,.2f}"
        )
        entities = [
            self._entity("boe_number", boe_number),
            self._entity("port", port_code),
            self._entity("iec_code", iec_code),
            self._entity("amount", f"{assessable:.2f}"),
        ]
        return structured, raw_text, entities

    def _general(self, filename: str | None) -> tuple[dict, str, list[Entity]]:
        now = self.clock()
        name = filename or f"document-{self.rng.randint(1000, 9999)}"
        structured = {
            "documentType": DocumentType.GENERAL.value,
            "fileName": name,
            "processedAt": now.isoformat(),
            "extractedText": "",
        }
        raw_text = f"Document: {name}\nProcessed: {now.isoformat()}"
        entities = [
            self._entity("document", name),
            self._entity("date", now.date().isoformat()),
            self._entity("document_type", DocumentType.GENERAL.value),
        ]
        return structured, raw_text, entities

    # --- Compliance ---

    def synthesize_compliance(
        self,
        doc_type: DocumentType,
        reason: FallbackReason = FallbackReason.EXHAUSTED,
    ) -> ComplianceResult:
        """Substitute checklist with one check per rule of the document type."""
        logger.info("Synthesizing compliance for %s (%s)", doc_type.value, reason.value)

        checks: list[ComplianceCheck] = []
        for name, requirement in COMPLIANCE_RULES[doc_type]:
            passed = self.rng.random() < CHECK_PASS_PROBABILITY
            critical = name in CRITICAL_RULES
            if passed:
                severity, message = Severity.INFO, f"{name} appears acceptable"
            else:
                severity = Severity.ERROR if critical else Severity.WARNING
                message = f"{name} could not be confirmed"
            checks.append(ComplianceCheck(
                name=f"{name} Check",
                passed=passed,
                severity=severity,
                message=message,
                requirement=requirement,
            ))

        failed = [c for c in checks if not c.passed]
        is_valid = not any(c.severity == Severity.ERROR for c in failed)
        low, high = COMPLIANCE_SCORE_RANGE
        score = self.rng.randint(VALID_SCORE_FLOOR, high) if is_valid else self.rng.randint(low, VALID_SCORE_FLOOR - 1)

        errors = [
            {
                "type": "unverified_requirement",
                "field": c.name,
                "message": c.message,
                "severity": c.severity.value,
                "requirement": c.requirement,
            }
            for c in failed
        ]
        corrections = [
            {
                "type": "verify_data",
                "field": c.name,
                "message": f"Verify: {c.requirement}",
                "suggestion": "Review the original document for this requirement",
                "priority": "high" if c.severity == Severity.ERROR else "medium",
            }
            for c in failed
        ]
        recommendations = [
            {
                "category": "compliance",
                "message": "Document appears to meet basic requirements"
                if is_valid else "Document may need review and corrections",
                "priority": "low" if is_valid else "high",
            },
            {
                "category": "ai_processing",
                "message": self._note(reason),
                "priority": "medium",
            },
        ]

        return ComplianceResult(
            success=True,
            document_type=doc_type,
            is_valid=is_valid,
            score=score,
            checks=checks,
            errors=errors,
            corrections=corrections,
            summary=ComplianceSummary.from_checks(checks),
            recommendations=recommendations,
            provider_id=FALLBACK_PROVIDER,
            is_synthesized=True,
            fallback_reason=reason,
            metadata={"note": self._note(reason)},
        )

    # --- Classification ---

    def synthesize_classification(
        self,
        product_description: str,
        reason: FallbackReason = FallbackReason.EXHAUSTED,
    ) -> list[CodeSuggestion]:
        """Keyword-matched HS codes; two generic entries when nothing matches."""
        description = product_description.lower()
        matched = [entry for entry in HS_CATALOGUE if any(k in description for k in entry[-1])]
        if not matched:
            matched = HS_CATALOGUE[:GENERIC_SUGGESTION_COUNT]

        suggestions = [
            CodeSuggestion(
                code=code,
                description=text,
                confidence=self.rng.randint(*CLASSIFICATION_CONFIDENCE_RANGE),
                category=category,
                duty_rate=duty_rate,
                restrictions=list(restrictions),
                similar_products=list(similar),
                provider_id=FALLBACK_PROVIDER,
                is_synthesized=True,
                fallback_reason=reason,
            )
            for code, text, category, duty_rate, restrictions, similar, _ in matched
        ]
        return sorted(suggestions, key=lambda s: s.confidence, reverse=True)

    @staticmethod
    def _note(reason: FallbackReason) -> str:
        if reason == FallbackReason.UNCONFIGURED:
            return "Fallback processing used. Configure provider API keys for real AI processing."
        if reason == FallbackReason.EXHAUSTED:
            return "Fallback processing used due to provider quota limits. Real AI processing resumes when quota resets."
        return "Fallback processing used after a provider error."
