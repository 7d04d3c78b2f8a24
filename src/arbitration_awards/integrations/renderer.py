from __future__ import annotations

import textwrap

from arbitration_awards.domain import AwardDocument, FindingBasis, PrevailingParty

LINE_WIDTH = 78
RULE = "-" * LINE_WIDTH

BASIS_LABELS: dict[FindingBasis, str] = {
    FindingBasis.UNDISPUTED: "(Undisputed)",
    FindingBasis.CREDIBILITY: "(Based on credibility determination)",
    FindingBasis.PROVEN: "(Proven by preponderance of evidence)",
}


def _wrap(text: str, indent: int = 0) -> list[str]:
    prefix = " " * indent
    return textwrap.wrap(text, width=LINE_WIDTH, initial_indent=prefix, subsequent_indent=prefix) or [""]


def _centered(text: str) -> str:
    return text.center(LINE_WIDTH).rstrip()


def _prevailing_label(document: AwardDocument) -> str:
    party = document.content.prevailing_party
    if party is PrevailingParty.CLAIMANT:
        return document.claimant_name
    if party is PrevailingParty.RESPONDENT:
        return document.respondent_name
    if party is PrevailingParty.SPLIT:
        return "Split decision"
    return "Not stated"


class PlainTextAwardRenderer:
    """Renders the award as UTF-8 text; byte output is deterministic for a given document."""

    content_type = "text/plain; charset=utf-8"
    extension = "txt"

    def render(self, document: AwardDocument) -> bytes:
        content = document.content
        lines: list[str] = [
            _centered("ARBITRATION AWARD"),
            _centered(f"Award No.: {document.reference_number}"),
            _centered(f"Case No.: {document.case_reference}"),
            RULE,
            f"{document.claimant_name},",
            "    Claimant,",
            _centered("v."),
            f"{document.respondent_name},",
            "    Respondent.",
            RULE,
        ]
        lines.extend(
            _wrap(
                f"This arbitration arose from a dispute between {document.claimant_name} "
                f'("Claimant") and {document.respondent_name} ("Respondent") pursuant to the '
                "arbitration agreement between the parties. The arbitrator, having reviewed all "
                "evidence, statements, and arguments submitted by both parties, hereby issues "
                "this final and binding award."
            )
        )

        lines.extend(["", _centered("FINDINGS OF FACT"), ""])
        for finding in content.findings_of_fact:
            lines.extend(_wrap(f"{finding.number}. {finding.finding} {BASIS_LABELS[finding.basis]}"))
            if finding.credibility_note:
                lines.extend(_wrap(finding.credibility_note, indent=4))

        lines.extend(["", _centered("CONCLUSIONS OF LAW"), ""])
        for conclusion in content.conclusions_of_law:
            lines.extend(_wrap(f"{conclusion.number}. {conclusion.conclusion}"))
            if conclusion.legal_basis:
                lines.extend(_wrap(f"Legal Basis: {'; '.join(conclusion.legal_basis)}", indent=4))
            if conclusion.supporting_findings:
                refs = ", ".join(f"Finding No. {number}" for number in conclusion.supporting_findings)
                lines.extend(_wrap(f"See {refs}.", indent=4))

        lines.extend(["", _centered("ORDER AND AWARD"), ""])
        for paragraph in content.decision.split("\n\n"):
            if paragraph.strip():
                lines.extend(_wrap(paragraph.strip()))
                lines.append("")
        amount = "None" if content.award_amount is None else f"${content.award_amount:,.2f}"
        lines.extend(
            [
                f"Award amount: {amount}",
                f"Prevailing party: {_prevailing_label(document)}",
                f"Jurisdiction: {document.jurisdiction}",
                RULE,
                f"DATED: {document.signed_at.strftime('%B %d, %Y')}",
                "",
                "______________________________",
                document.arbitrator_name,
                "Arbitrator",
                f"Digitally signed on {document.signed_at.isoformat()}",
            ]
        )
        return ("\n".join(lines) + "\n").encode("utf-8")
