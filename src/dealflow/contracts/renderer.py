"""Render a contract schema to a PDF with reportlab.

Rendering is pure: the document is built with ``invariant=1`` so the same
schema always yields byte-identical output.
"""

from __future__ import annotations

from io import BytesIO
from xml.sax.saxutils import escape

from pydantic import BaseModel, ConfigDict
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Flowable, Paragraph, SimpleDocTemplate, Spacer

from dealflow.contracts.schema import ContractSchema, contract_file_name
from dealflow.domain.types import CollabType

PDF_CONTENT_TYPE = "application/pdf"


class GeneratedContract(BaseModel):
    """A rendered contract document."""

    model_config = ConfigDict(frozen=True)

    document_bytes: bytes
    file_name: str
    content_type: str = PDF_CONTENT_TYPE


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


class ContractRenderer:
    """Lay out a :class:`ContractSchema` as a collaboration agreement PDF."""

    def __init__(self) -> None:
        styles = getSampleStyleSheet()
        self._title = styles["Title"]
        self._heading = styles["Heading3"]
        self._body = ParagraphStyle(
            "ContractBody", parent=styles["BodyText"], fontSize=10, leading=14
        )
        self._small = ParagraphStyle("ContractSmall", parent=self._body, fontSize=8, leading=11)

    def _p(self, text: str, style: ParagraphStyle | None = None) -> Paragraph:
        return Paragraph(escape(text), style or self._body)

    def _section(self, title: str, lines: list[str]) -> list[Flowable]:
        story: list[Flowable] = [Paragraph(escape(title), self._heading)]
        story.extend(self._p(line) for line in lines)
        return story

    def _compensation_lines(self, schema: ContractSchema) -> list[str]:
        lines: list[str] = []
        if schema.collab_type in (CollabType.PAID, CollabType.HYBRID):
            amount = schema.payment.amount if schema.payment.amount is not None else "As agreed"
            lines.append(f"Fee: {amount}")
            lines.append(f"Payment method: {schema.payment.method}")
            lines.append(f"Payment timeline: {schema.payment.timeline}")
        if schema.collab_type in (CollabType.BARTER, CollabType.HYBRID):
            description = schema.barter_description or "Product as agreed"
            value = ""
            if schema.barter_value is not None:
                value = f" (declared value {schema.barter_value})"
            lines.append(f"Product: {description}{value}")
        return lines

    def build_story(self, schema: ContractSchema) -> list[Flowable]:
        """Return the flowables making up the agreement."""
        brand, creator = schema.brand, schema.creator
        story: list[Flowable] = [
            Paragraph("Creator Collaboration Agreement", self._title),
            self._p(
                f"Agreement version {schema.contract_version}, "
                f"dated {schema.generated_on.isoformat()}"
            ),
            Spacer(1, 6 * mm),
        ]

        brand_line = f"Brand: {brand.name} ({brand.email})"
        if brand.contact_name:
            brand_line += f", represented by {brand.contact_name}"
        parties = [brand_line]
        if brand.address:
            parties.append(f"Brand address: {brand.address}")
        parties.append(f"Creator: {creator.name} ({creator.email})")
        story += self._section("1. Parties", parties)

        scope = [f"- {item}" for item in schema.deliverables]
        if not scope:
            scope = ["- As described in the campaign brief"]
        if schema.deadline is not None:
            scope.append(f"Content delivery deadline: {schema.deadline.isoformat()}")
        if schema.brief:
            scope.append(f"Brief: {schema.brief}")
        story += self._section("2. Scope of Work", scope)

        story += self._section("3. Compensation", self._compensation_lines(schema))

        usage = schema.usage
        story += self._section(
            "4. Usage Rights",
            [
                f"Type: {usage.usage_type}",
                f"Platforms: {', '.join(usage.platforms)}",
                f"Duration: {usage.duration}",
                f"Paid ads: {_yes_no(usage.paid_ads)}",
                f"Whitelisting: {_yes_no(usage.whitelisting)}",
            ],
        )

        exclusivity = schema.exclusivity
        if exclusivity.enabled:
            exclusivity_lines = [
                "The Creator will not promote competing "
                f"{exclusivity.category or 'category'} brands "
                f"for {exclusivity.duration or 'the campaign period'}."
            ]
        else:
            exclusivity_lines = ["No exclusivity applies to this collaboration."]
        story += self._section("5. Exclusivity", exclusivity_lines)

        story += self._section(
            "6. Termination",
            [
                f"Either party may terminate with {schema.termination_notice_days} days' "
                "written notice."
            ],
        )
        story += self._section(
            "7. Governing Law",
            [f"This agreement is governed by the laws applicable in {schema.jurisdiction_city}."],
        )

        if schema.additional_terms:
            story += self._section("8. Additional Terms", schema.additional_terms)

        story.append(Spacer(1, 10 * mm))
        story.append(
            self._p(
                "Signatures are collected electronically with email verification. "
                "Signer name, time, IP address and device are recorded with each signature.",
                self._small,
            )
        )
        return story

    def render(self, schema: ContractSchema) -> bytes:
        """Render *schema* to PDF bytes."""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=20 * mm,
            rightMargin=20 * mm,
            topMargin=20 * mm,
            bottomMargin=20 * mm,
            title=f"{schema.brand.name} x {schema.creator.name} Agreement",
            author="Dealflow",
            invariant=1,
        )
        doc.build(self.build_story(schema))
        return buffer.getvalue()

    def generate(self, schema: ContractSchema) -> GeneratedContract:
        """Render *schema* and name the resulting file."""
        return GeneratedContract(
            document_bytes=self.render(schema), file_name=contract_file_name(schema)
        )
